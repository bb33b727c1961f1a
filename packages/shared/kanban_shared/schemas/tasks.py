"""Task-related Pydantic schemas for shared use across server and client."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, StrictInt, field_validator

from .common import TaskPriority


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


def _naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    labels: List[str] = Field(default_factory=list)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class TaskCreate(TaskBase):
    project_id: UUID
    column_id: UUID

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class TaskUpdate(BaseModel):
    """Metadata update. Column and position are only changed through a move."""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    labels: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _strip_required(v)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class TaskRead(BaseModel):
    id: UUID
    project_id: UUID
    column_id: UUID
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    position: int
    assignee_id: Optional[UUID] = None
    assignee_name: Optional[str] = None
    due_date: Optional[datetime] = None
    labels: List[str] = Field(default_factory=list)
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------

class TaskMove(BaseModel):
    """Request body for POST /tasks/{taskId}/move."""
    column_id: UUID
    position: StrictInt = Field(ge=0)


# ---------------------------------------------------------------------------
# Subtasks & comments
# ---------------------------------------------------------------------------

class SubtaskCreate(BaseModel):
    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class SubtaskUpdate(BaseModel):
    title: Optional[str] = None
    is_completed: Optional[bool] = None


class SubtaskRead(BaseModel):
    id: UUID
    task_id: UUID
    title: str
    is_completed: bool
    position: int
    created_at: datetime

    model_config = {"from_attributes": True}


class CommentCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        return _strip_required(v)


class CommentRead(BaseModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    content: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime


class AttachmentRead(BaseModel):
    id: UUID
    task_id: UUID
    user_id: UUID
    file_name: str
    storage_key: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploader_name: Optional[str] = None
    download_url: Optional[str] = None
    created_at: datetime


class TaskDetail(TaskRead):
    subtasks: List[SubtaskRead] = Field(default_factory=list)
    comments: List[CommentRead] = Field(default_factory=list)
    attachments: List[AttachmentRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

class CalendarTask(BaseModel):
    id: UUID
    title: str
    due_date: datetime
    priority: TaskPriority
    project_id: UUID
    project_name: str
    column_name: str
    labels: List[str] = Field(default_factory=list)
