"""
User directory endpoints.

GET /api/v1/users?q=&limit=   Search by name or email (limit capped at 50)
PUT /api/v1/users/me          Update own profile
GET /api/v1/users/{userId}    Public profile
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from kanban_shared.schemas.users import UserPublic, UserUpdateRequest

router = APIRouter()


@router.get("", response_model=List[UserPublic])
async def search_users(
    q: str = "",
    limit: int = Query(10, ge=1),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.search_users(q, limit, session)


@router.put("/me", response_model=UserPublic)
async def update_me(
    body: UserUpdateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    user = await user_service.update_profile(user, body, session)
    await session.commit()
    await session.refresh(user)
    return user


@router.get("/{userId}", response_model=UserPublic)
async def get_user(
    userId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.get_user(userId, session)
