"""Activity feed endpoint."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services.activity import list_recent_activity
from kanban_shared.schemas.activity import ActivityRead

router = APIRouter()


@router.get("", response_model=List[ActivityRead])
async def list_activities_endpoint(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Most recent activity across every project the caller can see."""
    return await list_recent_activity(session, user.id, limit)
