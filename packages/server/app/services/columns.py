"""Column service layer: create, update, reorder and delete board columns."""

from __future__ import annotations

import uuid

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.column import BoardColumn
from app.models.project import Project
from app.models.task import Task
from app.services import positions
from app.services.activity import record_activity
from kanban_shared.schemas.activity import ColumnMovedDetails
from kanban_shared.schemas.columns import ColumnCreate, ColumnUpdate
from kanban_shared.schemas.common import DEFAULT_COLUMN_COLOR

log = structlog.get_logger()


async def create_column(session: AsyncSession, body: ColumnCreate, project: Project) -> BoardColumn:
    position = await positions.next_position(session, positions.COLUMNS_IN_PROJECT, project.id)
    column = BoardColumn(
        project_id=project.id,
        name=body.name,
        position=position,
        wip_limit=body.wip_limit,
        color=body.color or DEFAULT_COLUMN_COLOR,
    )
    session.add(column)
    await session.flush()
    log.info("column.created", column_id=str(column.id), project_id=str(project.id), position=position)
    return column


async def update_column(session: AsyncSession, column: BoardColumn, body: ColumnUpdate) -> BoardColumn:
    data = body.model_dump(exclude_unset=True)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Column name cannot be empty")
        data["name"] = name
    if "color" in data and not data["color"]:
        data["color"] = DEFAULT_COLUMN_COLOR
    for key, value in data.items():
        setattr(column, key, value)
    session.add(column)
    await session.flush()
    return column


async def reorder_column(
    session: AsyncSession, column: BoardColumn, position: int, user_id: uuid.UUID
) -> bool:
    """Move a column within its project. Returns False for a no-op."""
    old = column.position
    moved = await positions.move_within(session, positions.COLUMNS_IN_PROJECT, column, position)
    if not moved:
        return False

    await record_activity(
        session,
        project_id=column.project_id,
        user_id=user_id,
        details=ColumnMovedDetails(
            column_id=column.id,
            name=column.name,
            from_position=old,
            to_position=position,
        ),
    )
    log.info("column.moved", column_id=str(column.id), from_position=old, to_position=position)
    return True


async def delete_column(session: AsyncSession, column: BoardColumn) -> None:
    """Delete an empty column. Columns that still hold tasks are refused with 409."""
    # Project before column, the same order a project delete cascades in.
    await positions.lock_container(session, positions.COLUMNS_IN_PROJECT, column.project_id)
    # Holding the column lock keeps task creates out until the delete commits.
    await positions.lock_container(session, positions.TASKS_IN_COLUMN, column.id)
    result = await session.execute(
        select(func.count(Task.id)).where(Task.column_id == column.id)
    )
    if result.scalar_one() > 0:
        raise HTTPException(
            status_code=409,
            detail="Cannot delete column with tasks. Move or delete tasks first.",
        )
    column_id = column.id
    await positions.remove_item(session, positions.COLUMNS_IN_PROJECT, column)
    log.info("column.deleted", column_id=str(column_id))
