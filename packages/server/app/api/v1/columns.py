"""
Column endpoints.

Columns are ordered per project; reorder and delete keep positions dense.
A column that still holds tasks cannot be deleted (409).
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import columns as column_service
from app.services.access import get_column_for_user, get_project_for_user
from app.services.projects import list_columns
from kanban_shared.schemas.columns import (
    ColumnCreate,
    ColumnOrder,
    ColumnRead,
    ColumnReorder,
    ColumnUpdate,
)
from kanban_shared.schemas.common import APIResponse

router = APIRouter()


@router.post("", response_model=ColumnRead, status_code=201)
async def create_column_endpoint(
    body: ColumnCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Append a column to the end of the project's board."""
    project = await get_project_for_user(session, body.project_id, user.id)
    column = await column_service.create_column(session, body, project)
    await session.commit()
    return column


@router.put("/{column_id}", response_model=ColumnRead)
async def update_column_endpoint(
    column_id: uuid.UUID,
    body: ColumnUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    column = await get_column_for_user(session, column_id, user.id)
    column = await column_service.update_column(session, column, body)
    await session.commit()
    await session.refresh(column)
    return column


@router.put("/{column_id}/reorder", response_model=ColumnOrder)
async def reorder_column_endpoint(
    column_id: uuid.UUID,
    body: ColumnReorder,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Move a column to ``position``; returns the project's columns in order."""
    column = await get_column_for_user(session, column_id, user.id)
    await column_service.reorder_column(session, column, body.position, user.id)
    await session.commit()
    columns = await list_columns(session, column.project_id)
    return ColumnOrder(columns=[ColumnRead.model_validate(c) for c in columns])


@router.delete("/{column_id}", response_model=APIResponse)
async def delete_column_endpoint(
    column_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    column = await get_column_for_user(session, column_id, user.id)
    await column_service.delete_column(session, column)
    await session.commit()
    return APIResponse(message="Column deleted successfully")
