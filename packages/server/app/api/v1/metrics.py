"""Dashboard metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services.metrics import get_metrics
from kanban_shared.schemas.metrics import MetricsRead

router = APIRouter()


@router.get("", response_model=MetricsRead)
async def metrics_endpoint(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await get_metrics(session, user.id)
