"""
Task service layer: business logic for tasks, subtasks and comments.

Handles:
- Task create (appended to its column), metadata update, move, delete
- Activity records for every task mutation
- Task detail enrichment (assignee, subtasks, comments, attachments)
- Calendar query across the caller's projects
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.column import BoardColumn
from app.models.project import Project
from app.models.task import Attachment, Comment, Subtask, Task
from app.models.user import User
from app.services import positions
from app.services.access import accessible_project_ids, get_membership
from app.services.activity import record_activity
from kanban_shared.schemas.activity import (
    CommentAddedDetails,
    TaskCreatedDetails,
    TaskDeletedDetails,
    TaskMovedDetails,
    TaskUpdatedDetails,
)
from kanban_shared.schemas.tasks import (
    AttachmentRead,
    CalendarTask,
    CommentCreate,
    CommentRead,
    SubtaskCreate,
    SubtaskRead,
    SubtaskUpdate,
    TaskCreate,
    TaskDetail,
    TaskRead,
    TaskUpdate,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_task_read(task: Task, assignee_name: Optional[str] = None) -> TaskRead:
    read = TaskRead.model_validate(task)
    read.assignee_name = assignee_name
    return read


async def _assignee_name(session: AsyncSession, task: Task) -> Optional[str]:
    if task.assignee_id is None:
        return None
    user = await session.get(User, task.assignee_id)
    return user.full_name if user else None


async def _check_assignee(
    session: AsyncSession, project: Project, assignee_id: Optional[uuid.UUID]
) -> None:
    """Assignees must be able to see the project."""
    if assignee_id is None or assignee_id == project.owner_id:
        return
    if not await get_membership(session, project.id, assignee_id):
        raise HTTPException(status_code=400, detail="Assignee is not a member of this project")


async def enrich_task(session: AsyncSession, task: Task) -> TaskRead:
    return to_task_read(task, await _assignee_name(session, task))


async def get_task_detail(session: AsyncSession, task: Task) -> TaskDetail:
    """Task with subtasks, comments (with author) and attachments (with uploader)."""
    base = await enrich_task(session, task)

    result = await session.execute(
        select(Subtask).where(Subtask.task_id == task.id).order_by(Subtask.position)
    )
    subtasks = [SubtaskRead.model_validate(s) for s in result.scalars().all()]

    result = await session.execute(
        select(Comment, User)
        .join(User, User.id == Comment.user_id)
        .where(Comment.task_id == task.id)
        .order_by(Comment.created_at.desc())
    )
    comments = [_comment_read(c, u) for c, u in result.all()]

    result = await session.execute(
        select(Attachment, User.full_name)
        .join(User, User.id == Attachment.user_id)
        .where(Attachment.task_id == task.id)
        .order_by(Attachment.created_at.desc())
    )
    attachments = [attachment_read(a, name) for a, name in result.all()]

    return TaskDetail(
        **base.model_dump(),
        subtasks=subtasks,
        comments=comments,
        attachments=attachments,
    )


def _comment_read(comment: Comment, user: User) -> CommentRead:
    return CommentRead(
        id=comment.id,
        task_id=comment.task_id,
        user_id=comment.user_id,
        content=comment.content,
        full_name=user.full_name,
        avatar_url=user.avatar_url,
        created_at=comment.created_at,
    )


def attachment_read(attachment: Attachment, uploader_name: Optional[str] = None) -> AttachmentRead:
    return AttachmentRead(
        id=attachment.id,
        task_id=attachment.task_id,
        user_id=attachment.user_id,
        file_name=attachment.file_name,
        storage_key=attachment.storage_key,
        file_size=attachment.file_size,
        mime_type=attachment.mime_type,
        uploader_name=uploader_name,
        download_url=f"/api/v1/attachments/{attachment.id}/download",
        created_at=attachment.created_at,
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession,
    task_in: TaskCreate,
    project: Project,
    user_id: uuid.UUID,
) -> Task:
    column = await session.get(BoardColumn, task_in.column_id)
    if column is None or column.project_id != project.id:
        raise HTTPException(status_code=400, detail="Column does not belong to this project")
    await _check_assignee(session, project, task_in.assignee_id)

    position = await positions.next_position(session, positions.TASKS_IN_COLUMN, column.id)
    task = Task(
        project_id=project.id,
        column_id=column.id,
        title=task_in.title,
        description=task_in.description,
        priority=task_in.priority.value,
        position=position,
        assignee_id=task_in.assignee_id,
        due_date=task_in.due_date,
        labels=list(task_in.labels),
        created_by=user_id,
    )
    session.add(task)
    await session.flush()

    await record_activity(
        session,
        project_id=project.id,
        task_id=task.id,
        user_id=user_id,
        details=TaskCreatedDetails(title=task.title),
    )
    log.info("task.created", task_id=str(task.id), column_id=str(column.id), position=position)
    return task


async def update_task(
    session: AsyncSession,
    task: Task,
    task_in: TaskUpdate,
    project: Project,
    user_id: uuid.UUID,
) -> Task:
    data = task_in.model_dump(exclude_unset=True)
    if "title" in data and data["title"] is None:
        raise HTTPException(status_code=400, detail="Title cannot be empty")
    if "priority" in data:
        if data["priority"] is None:
            raise HTTPException(status_code=400, detail="Priority cannot be empty")
        data["priority"] = data["priority"].value
    if "labels" in data and data["labels"] is None:
        data["labels"] = []
    if data.get("assignee_id") is not None:
        await _check_assignee(session, project, data["assignee_id"])

    changed = [key for key, value in data.items() if getattr(task, key) != value]
    if not changed:
        return task

    for key in changed:
        setattr(task, key, data[key])
    session.add(task)
    await session.flush()

    await record_activity(
        session,
        project_id=task.project_id,
        task_id=task.id,
        user_id=user_id,
        details=TaskUpdatedDetails(changes=changed),
    )
    return task


async def move_task(
    session: AsyncSession,
    task: Task,
    column_id: uuid.UUID,
    position: int,
    user_id: uuid.UUID,
) -> bool:
    """Move a task and record it. Returns False when nothing changed."""
    column = await session.get(BoardColumn, column_id)
    if column is None or column.project_id != task.project_id:
        raise HTTPException(status_code=400, detail="Target column does not belong to the task's project")

    from_column = task.column_id
    moved = await positions.move_task(session, task, column_id, position)
    if not moved:
        return False

    await record_activity(
        session,
        project_id=task.project_id,
        task_id=task.id,
        user_id=user_id,
        details=TaskMovedDetails(from_column=from_column, to_column=column_id, position=position),
    )
    log.info(
        "task.moved",
        task_id=str(task.id),
        from_column=str(from_column),
        to_column=str(column_id),
        position=position,
    )
    return True


async def delete_task(session: AsyncSession, task: Task, user_id: uuid.UUID) -> None:
    project_id, task_id, title = task.project_id, task.id, task.title
    await positions.remove_item(session, positions.TASKS_IN_COLUMN, task)
    # The task row is gone, so the record carries the title instead of a task reference.
    await record_activity(
        session,
        project_id=project_id,
        user_id=user_id,
        details=TaskDeletedDetails(title=title),
    )
    log.info("task.deleted", task_id=str(task_id))


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


async def list_calendar_tasks(
    session: AsyncSession,
    user_id: uuid.UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[CalendarTask]:
    start, end = _naive_utc(start), _naive_utc(end)
    stmt = (
        select(Task, Project.name, BoardColumn.name)
        .join(Project, Project.id == Task.project_id)
        .join(BoardColumn, BoardColumn.id == Task.column_id)
        .where(
            Task.project_id.in_(accessible_project_ids(user_id)),
            Task.due_date.is_not(None),
        )
        .order_by(Task.due_date)
    )
    if start is not None:
        stmt = stmt.where(Task.due_date >= start)
    if end is not None:
        stmt = stmt.where(Task.due_date <= end)

    result = await session.execute(stmt)
    return [
        CalendarTask(
            id=task.id,
            title=task.title,
            due_date=task.due_date,
            priority=task.priority,
            project_id=task.project_id,
            project_name=project_name,
            column_name=column_name,
            labels=task.labels or [],
        )
        for task, project_name, column_name in result.all()
    ]


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------


async def get_subtask_or_404(
    session: AsyncSession, task: Task, subtask_id: uuid.UUID
) -> Subtask:
    subtask = await session.get(Subtask, subtask_id)
    if not subtask or subtask.task_id != task.id:
        raise HTTPException(status_code=404, detail="Subtask not found")
    return subtask


async def create_subtask(session: AsyncSession, task: Task, body: SubtaskCreate) -> Subtask:
    result = await session.execute(
        select(func.max(Subtask.position)).where(Subtask.task_id == task.id)
    )
    current = result.scalar_one_or_none()
    subtask = Subtask(
        task_id=task.id,
        title=body.title,
        position=0 if current is None else current + 1,
    )
    session.add(subtask)
    await session.flush()
    return subtask


async def update_subtask(session: AsyncSession, subtask: Subtask, body: SubtaskUpdate) -> Subtask:
    data = body.model_dump(exclude_unset=True)
    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            raise HTTPException(status_code=400, detail="Title cannot be empty")
        data["title"] = title
    if "is_completed" in data and data["is_completed"] is None:
        raise HTTPException(status_code=400, detail="is_completed must be a boolean")
    for key, value in data.items():
        setattr(subtask, key, value)
    session.add(subtask)
    await session.flush()
    return subtask


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def add_comment(
    session: AsyncSession, task: Task, body: CommentCreate, user: User
) -> CommentRead:
    comment = Comment(task_id=task.id, user_id=user.id, content=body.content)
    session.add(comment)
    await session.flush()
    await record_activity(
        session,
        project_id=task.project_id,
        task_id=task.id,
        user_id=user.id,
        details=CommentAddedDetails(comment_id=comment.id),
    )
    return _comment_read(comment, user)


async def delete_comment(
    session: AsyncSession, task: Task, comment_id: uuid.UUID, user_id: uuid.UUID
) -> None:
    comment = await session.get(Comment, comment_id)
    if not comment or comment.task_id != task.id or comment.user_id != user_id:
        raise HTTPException(status_code=404, detail="Comment not found or access denied")
    await session.delete(comment)
    await session.flush()
