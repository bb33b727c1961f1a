"""
Activity log: append typed records and build the feed.

Records are written on the caller's session so they commit (or roll back)
together with the change they describe.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.activity import ActivityLog
from app.models.base import utcnow
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services.access import accessible_project_ids
from kanban_shared.schemas.activity import (
    ActivityDetails,
    ActivityRead,
    ActivityUser,
    describe_activity,
    parse_activity_details,
)

log = structlog.get_logger()


async def record_activity(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    details: ActivityDetails,
    task_id: Optional[uuid.UUID] = None,
) -> ActivityLog:
    entry = ActivityLog(
        project_id=project_id,
        task_id=task_id,
        user_id=user_id,
        action=details.action,
        details=details.model_dump(mode="json"),
    )
    session.add(entry)
    await session.flush()
    return entry


# ---------------------------------------------------------------------------
# Feed helpers
# ---------------------------------------------------------------------------


def relative_time(then: datetime, now: Optional[datetime] = None) -> str:
    """'Just now', '5m ago', '3h ago', 'Yesterday', '4d ago'."""
    now = now or utcnow()
    seconds = int((now - then).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days == 1:
        return "Yesterday"
    return f"{days}d ago"


def initials(name: str) -> str:
    parts = [p for p in name.split() if p]
    return "".join(p[0] for p in parts).upper()[:2]


async def list_recent_activity(
    session: AsyncSession, user_id: uuid.UUID, limit: int = 20
) -> List[ActivityRead]:
    stmt = (
        select(ActivityLog, User, Project, Task.title)
        .join(User, User.id == ActivityLog.user_id)
        .join(Project, Project.id == ActivityLog.project_id)
        .outerjoin(Task, Task.id == ActivityLog.task_id)
        .where(ActivityLog.project_id.in_(accessible_project_ids(user_id)))
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)

    now = utcnow()
    feed: List[ActivityRead] = []
    for entry, user, project, task_title in result.all():
        try:
            details = parse_activity_details(entry.details)
        except ValidationError:
            log.warning("activity.unreadable_details", activity_id=str(entry.id), action=entry.action)
            continue
        feed.append(
            ActivityRead(
                id=entry.id,
                action=entry.action,
                user=ActivityUser(
                    id=user.id,
                    name=user.full_name,
                    avatar=user.avatar_url,
                    initials=initials(user.full_name),
                ),
                task_id=entry.task_id,
                task_name=task_title,
                project_id=project.id,
                project_name=project.name,
                details=details,
                description=describe_activity(details),
                timestamp=relative_time(entry.created_at, now),
                created_at=entry.created_at,
            )
        )
    return feed
