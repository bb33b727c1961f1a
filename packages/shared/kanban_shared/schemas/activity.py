"""Activity log schemas.

Each action kind is its own model carrying a typed payload, discriminated on
``action``. ``ActivityDetails`` is the closed union of all kinds; new kinds must
be added to the union and to ``describe_activity``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union, assert_never
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter

from .common import MemberRole


class TaskCreatedDetails(BaseModel):
    action: Literal["task_created"] = "task_created"
    title: str


class TaskUpdatedDetails(BaseModel):
    action: Literal["task_updated"] = "task_updated"
    changes: List[str] = Field(default_factory=list)


class TaskMovedDetails(BaseModel):
    action: Literal["task_moved"] = "task_moved"
    from_column: UUID
    to_column: UUID
    position: int


class TaskDeletedDetails(BaseModel):
    action: Literal["task_deleted"] = "task_deleted"
    title: str


class ColumnMovedDetails(BaseModel):
    action: Literal["column_moved"] = "column_moved"
    column_id: UUID
    name: str
    from_position: int
    to_position: int


class CommentAddedDetails(BaseModel):
    action: Literal["comment_added"] = "comment_added"
    comment_id: UUID


class AttachmentAddedDetails(BaseModel):
    action: Literal["attachment_added"] = "attachment_added"
    file_name: str


class MemberAddedDetails(BaseModel):
    action: Literal["member_added"] = "member_added"
    user_id: UUID
    role: MemberRole


class MemberRemovedDetails(BaseModel):
    action: Literal["member_removed"] = "member_removed"
    user_id: UUID


ActivityDetails = Annotated[
    Union[
        TaskCreatedDetails,
        TaskUpdatedDetails,
        TaskMovedDetails,
        TaskDeletedDetails,
        ColumnMovedDetails,
        CommentAddedDetails,
        AttachmentAddedDetails,
        MemberAddedDetails,
        MemberRemovedDetails,
    ],
    Field(discriminator="action"),
]

activity_details_adapter: TypeAdapter[ActivityDetails] = TypeAdapter(ActivityDetails)


def parse_activity_details(raw: dict) -> ActivityDetails:
    """Validate a stored details payload into its typed variant."""
    return activity_details_adapter.validate_python(raw)


def describe_activity(details: ActivityDetails) -> str:
    """Human-readable summary for the activity feed."""
    if isinstance(details, TaskCreatedDetails):
        return f'created task "{details.title}"'
    elif isinstance(details, TaskUpdatedDetails):
        fields = ", ".join(details.changes) or "details"
        return f"updated {fields}"
    elif isinstance(details, TaskMovedDetails):
        if details.from_column == details.to_column:
            return f"reordered a task to position {details.position}"
        return f"moved a task to another column at position {details.position}"
    elif isinstance(details, TaskDeletedDetails):
        return f'deleted task "{details.title}"'
    elif isinstance(details, ColumnMovedDetails):
        return f'moved column "{details.name}" to position {details.to_position}'
    elif isinstance(details, CommentAddedDetails):
        return "commented on a task"
    elif isinstance(details, AttachmentAddedDetails):
        return f"uploaded {details.file_name}"
    elif isinstance(details, MemberAddedDetails):
        return f"added a {details.role.value} to the project"
    elif isinstance(details, MemberRemovedDetails):
        return "removed a member from the project"
    else:
        assert_never(details)


# ---------------------------------------------------------------------------
# Feed
# ---------------------------------------------------------------------------

class ActivityUser(BaseModel):
    id: UUID
    name: str
    avatar: Optional[str] = None
    initials: str


class ActivityRead(BaseModel):
    id: UUID
    action: str
    user: ActivityUser
    task_id: Optional[UUID] = None
    task_name: Optional[str] = None
    project_id: UUID
    project_name: str
    details: ActivityDetails
    description: str
    timestamp: str  # relative, e.g. "5m ago"
    created_at: datetime
