"""
Task endpoints: CRUD, move, subtasks, comments, calendar.

Create appends the task to its column, move reindexes the affected columns,
and delete closes the gap it leaves. Each of these runs in one transaction
together with its activity record.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import tasks as task_service
from app.services.access import get_project_for_user, get_task_for_user
from kanban_shared.schemas.common import APIResponse
from kanban_shared.schemas.tasks import (
    CalendarTask,
    CommentCreate,
    CommentRead,
    SubtaskCreate,
    SubtaskRead,
    SubtaskUpdate,
    TaskCreate,
    TaskDetail,
    TaskMove,
    TaskRead,
    TaskUpdate,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------


@router.get("/calendar", response_model=List[CalendarTask])
async def calendar_endpoint(
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Tasks with a due date in ``[from, to]`` across the caller's projects."""
    return await task_service.list_calendar_tasks(session, user.id, start, end)


@router.post("", response_model=TaskRead, status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a task at the end of its column."""
    project = await get_project_for_user(session, task_in.project_id, user.id)
    task = await task_service.create_task(session, task_in, project, user.id)
    await session.commit()
    return await task_service.enrich_task(session, task)


@router.get("/{task_id}", response_model=TaskDetail)
async def get_task_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Get a single task with subtasks, comments and attachments."""
    task = await get_task_for_user(session, task_id, user.id)
    return await task_service.get_task_detail(session, task)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task_endpoint(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Update task metadata. Column and position only change through a move."""
    task = await get_task_for_user(session, task_id, user.id)
    project = await get_project_for_user(session, task.project_id, user.id)
    task = await task_service.update_task(session, task, task_in, project, user.id)
    await session.commit()
    await session.refresh(task)
    return await task_service.enrich_task(session, task)


@router.post("/{task_id}/move", response_model=APIResponse)
async def move_task_endpoint(
    task_id: uuid.UUID,
    body: TaskMove,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Move a task to ``position`` in ``column_id``."""
    task = await get_task_for_user(session, task_id, user.id)
    moved = await task_service.move_task(session, task, body.column_id, body.position, user.id)
    await session.commit()
    return APIResponse(message="Task moved successfully" if moved else "Task already at position")


@router.delete("/{task_id}", response_model=APIResponse)
async def delete_task_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_for_user(session, task_id, user.id)
    await task_service.delete_task(session, task, user.id)
    await session.commit()
    return APIResponse(message="Task deleted successfully")


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------


@router.post("/{task_id}/subtasks", response_model=SubtaskRead, status_code=201)
async def create_subtask_endpoint(
    task_id: uuid.UUID,
    body: SubtaskCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_for_user(session, task_id, user.id)
    subtask = await task_service.create_subtask(session, task, body)
    await session.commit()
    return subtask


@router.put("/{task_id}/subtasks/{subtask_id}", response_model=SubtaskRead)
async def update_subtask_endpoint(
    task_id: uuid.UUID,
    subtask_id: uuid.UUID,
    body: SubtaskUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_for_user(session, task_id, user.id)
    subtask = await task_service.get_subtask_or_404(session, task, subtask_id)
    subtask = await task_service.update_subtask(session, subtask, body)
    await session.commit()
    return subtask


@router.delete("/{task_id}/subtasks/{subtask_id}", response_model=APIResponse)
async def delete_subtask_endpoint(
    task_id: uuid.UUID,
    subtask_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_for_user(session, task_id, user.id)
    subtask = await task_service.get_subtask_or_404(session, task, subtask_id)
    await session.delete(subtask)
    await session.commit()
    return APIResponse(message="Subtask deleted successfully")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=201)
async def add_comment_endpoint(
    task_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_for_user(session, task_id, user.id)
    comment = await task_service.add_comment(session, task, body, user)
    await session.commit()
    return comment


@router.delete("/{task_id}/comments/{comment_id}", response_model=APIResponse)
async def delete_comment_endpoint(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Authors can delete their own comments."""
    task = await get_task_for_user(session, task_id, user.id)
    await task_service.delete_comment(session, task, comment_id, user.id)
    await session.commit()
    return APIResponse(message="Comment deleted successfully")
