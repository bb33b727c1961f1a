"""Activity log model (append-only)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import event
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class ActivityLog(UUIDMixin, SQLModel, table=True):
    __tablename__ = "activity_log"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True, ondelete="CASCADE")
    task_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tasks.id", ondelete="SET NULL")
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, ondelete="CASCADE")
    action: str = Field(nullable=False, index=True)  # matches details["action"]
    details: dict = Field(default_factory=dict, sa_type=sa.JSON, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(),
    )


class ImmutableActivityError(RuntimeError):
    pass


@event.listens_for(ActivityLog, "before_update")
def _reject_activity_update(mapper, connection, target):
    raise ImmutableActivityError("Activity log entries are immutable")
