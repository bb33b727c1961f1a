"""
Project endpoints: CRUD, board read, membership.

GET    /projects                         Caller's projects with counts
POST   /projects                         Create (owner membership + default columns)
GET    /projects/{projectId}             Board: columns with ordered tasks, members
PUT    /projects/{projectId}             Update (owner only)
DELETE /projects/{projectId}             Delete with cascade (owner only)
POST   /projects/{projectId}/members     Add member (owner/admin)
DELETE /projects/{projectId}/members/{userId} Remove member (owner/admin)
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import projects as project_service
from app.services.access import get_owned_project, get_project_for_user, require_project_role
from kanban_shared.schemas.common import MEMBER_MANAGER_ROLES, APIResponse
from kanban_shared.schemas.projects import (
    BoardRead,
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectRead,
    ProjectSummary,
    ProjectUpdate,
)

router = APIRouter()


@router.get("", response_model=List[ProjectSummary])
async def list_projects_endpoint(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.list_projects(session, user.id)


@router.post("", response_model=BoardRead, status_code=201)
async def create_project_endpoint(
    body: ProjectCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a project. Returns the new (empty) board."""
    project = await project_service.create_project(session, body, user)
    await session.commit()
    return await project_service.get_board(session, project)


@router.get("/{project_id}", response_model=BoardRead)
async def get_project_endpoint(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await get_project_for_user(session, project_id, user.id)
    return await project_service.get_board(session, project)


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project_endpoint(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await get_owned_project(session, project_id, user.id)
    project = await project_service.update_project(session, project, body)
    await session.commit()
    await session.refresh(project)
    return project


@router.delete("/{project_id}", response_model=APIResponse)
async def delete_project_endpoint(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await get_owned_project(session, project_id, user.id)
    await project_service.delete_project(session, project)
    await session.commit()
    return APIResponse(message="Project deleted successfully")


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


@router.post("/{project_id}/members", response_model=ProjectMemberRead, status_code=201)
async def add_member_endpoint(
    project_id: uuid.UUID,
    body: ProjectMemberAdd,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await require_project_role(session, project_id, user.id, MEMBER_MANAGER_ROLES)
    member = await project_service.add_member(session, project, body, user.id)
    await session.commit()
    return member


@router.delete("/{project_id}/members/{user_id}", response_model=APIResponse)
async def remove_member_endpoint(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await require_project_role(session, project_id, user.id, MEMBER_MANAGER_ROLES)
    await project_service.remove_member(session, project, user_id, user.id)
    await session.commit()
    return APIResponse(message="Member removed successfully")
