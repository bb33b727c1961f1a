"""
User service: registration, credential checks, profile and directory search.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password, verify_password
from app.models.user import User
from kanban_shared.schemas.common import UserRole
from kanban_shared.schemas.users import RegisterRequest, UserUpdateRequest

log = structlog.get_logger()

MIN_PASSWORD_LENGTH = 8
MAX_SEARCH_LIMIT = 50


async def get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def register_user(req: RegisterRequest, session: AsyncSession) -> User:
    if len(req.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    if await get_user_by_email(req.email, session):
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=req.email.lower(),
        password_hash=hash_password(req.password),
        full_name=req.full_name.strip(),
        role=UserRole.MEMBER.value,
    )
    session.add(user)
    await session.flush()
    log.info("user.registered", user_id=str(user.id), email=user.email)
    return user


async def authenticate(email: str, password: str, session: AsyncSession) -> User:
    user = await get_user_by_email(email, session)
    if not user or not verify_password(password, user.password_hash):
        log.warning("auth.login_failure", email=email.lower())
        raise HTTPException(status_code=401, detail="Invalid email or password")
    log.info("auth.login_success", user_id=str(user.id))
    return user


async def get_user(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def search_users(query: str, limit: int, session: AsyncSession) -> List[User]:
    """Case-insensitive match on name or email, capped at ``MAX_SEARCH_LIMIT``."""
    limit = max(1, min(limit, MAX_SEARCH_LIMIT))
    stmt = select(User).order_by(User.full_name).limit(limit)
    query = query.strip()
    if query:
        pattern = f"%{query.lower()}%"
        stmt = stmt.where(
            or_(User.full_name.ilike(pattern), User.email.ilike(pattern))
        )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_profile(user: User, req: UserUpdateRequest, session: AsyncSession) -> User:
    data = req.model_dump(exclude_unset=True)
    if "full_name" in data:
        if data["full_name"] is None or not data["full_name"].strip():
            raise HTTPException(status_code=400, detail="Full name cannot be empty")
        data["full_name"] = data["full_name"].strip()
    for key, value in data.items():
        setattr(user, key, value)
    session.add(user)
    await session.flush()
    log.info("user.updated", user_id=str(user.id), fields=sorted(data))
    return user
