"""
Project-scoped access checks.

A caller may touch a project (and everything inside it) when they own it or
hold a membership row. Every failure is reported as 404 so the API never
reveals whether an id exists in somebody else's project.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.column import BoardColumn
from app.models.project import Project, ProjectMember
from app.models.task import Task
from kanban_shared.schemas.common import MemberRole


def accessible_project_ids(user_id: uuid.UUID):
    """Sub-select of project ids the user owns or is a member of.

    Never correlated, so it can be embedded in queries that also select from
    ``projects``.
    """
    return (
        select(Project.id)
        .outerjoin(ProjectMember, ProjectMember.project_id == Project.id)
        .where(or_(Project.owner_id == user_id, ProjectMember.user_id == user_id))
        .correlate(None)
    )


async def get_membership(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[ProjectMember]:
    return await session.get(ProjectMember, (project_id, user_id))


async def get_project_for_user(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found or access denied")
    if project.owner_id != user_id and not await get_membership(session, project_id, user_id):
        raise HTTPException(status_code=404, detail="Project not found or access denied")
    return project


async def get_owned_project(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> Project:
    project = await session.get(Project, project_id)
    if project is None or project.owner_id != user_id:
        raise HTTPException(status_code=404, detail="Project not found or not owner")
    return project


async def require_project_role(
    session: AsyncSession,
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    roles: Iterable[MemberRole],
) -> Project:
    """Like ``get_project_for_user`` but also requires one of ``roles`` (403 otherwise)."""
    project = await get_project_for_user(session, project_id, user_id)
    allowed = {r.value for r in roles}
    if project.owner_id == user_id and MemberRole.OWNER.value in allowed:
        return project
    membership = await get_membership(session, project_id, user_id)
    if membership is None or membership.role not in allowed:
        raise HTTPException(status_code=403, detail="Insufficient project role")
    return project


async def get_task_for_user(
    session: AsyncSession, task_id: uuid.UUID, user_id: uuid.UUID
) -> Task:
    task = await session.get(Task, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found or access denied")
    try:
        await get_project_for_user(session, task.project_id, user_id)
    except HTTPException:
        raise HTTPException(status_code=404, detail="Task not found or access denied")
    return task


async def get_column_for_user(
    session: AsyncSession, column_id: uuid.UUID, user_id: uuid.UUID
) -> BoardColumn:
    column = await session.get(BoardColumn, column_id)
    if column is None:
        raise HTTPException(status_code=404, detail="Column not found or access denied")
    try:
        await get_project_for_user(session, column.project_id, user_id)
    except HTTPException:
        raise HTTPException(status_code=404, detail="Column not found or access denied")
    return column
