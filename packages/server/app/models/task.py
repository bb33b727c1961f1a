"""Task model and its children (subtasks, comments, attachments)."""

from datetime import datetime
from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True, ondelete="CASCADE")
    column_id: uuid.UUID = Field(foreign_key="columns.id", nullable=False, index=True, ondelete="CASCADE")
    title: str = Field(nullable=False)
    description: Optional[str] = None
    priority: str = Field(nullable=False, default="medium")  # low | medium | high | critical
    # Dense 0..n-1 within the column; written only by app.services.positions.
    position: int = Field(nullable=False, default=0, index=True)
    assignee_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    due_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime())
    labels: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False, ondelete="CASCADE")


class Subtask(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "subtasks"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True, ondelete="CASCADE")
    title: str = Field(nullable=False)
    is_completed: bool = Field(default=False, nullable=False)
    position: int = Field(nullable=False, default=0)  # append order only


class Comment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "comments"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True, ondelete="CASCADE")
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, ondelete="CASCADE")
    content: str = Field(nullable=False)


class Attachment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "attachments"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True, ondelete="CASCADE")
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, ondelete="CASCADE")
    file_name: str = Field(nullable=False)
    storage_key: str = Field(nullable=False, unique=True)
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
