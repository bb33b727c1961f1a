"""
Project service layer: projects, membership and the board read model.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Dict, List

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.column import BoardColumn
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.user import User
from app.services import positions
from app.services.access import accessible_project_ids, get_membership
from app.services.activity import record_activity
from app.services.tasks import to_task_read
from kanban_shared.schemas.activity import MemberAddedDetails, MemberRemovedDetails
from kanban_shared.schemas.columns import BoardColumnRead, ColumnRead
from kanban_shared.schemas.common import MemberRole
from kanban_shared.schemas.projects import (
    BoardRead,
    ProjectCreate,
    ProjectMemberAdd,
    ProjectMemberRead,
    ProjectRead,
    ProjectSummary,
    ProjectUpdate,
)
from kanban_shared.schemas.tasks import TaskRead

log = structlog.get_logger()

DEFAULT_COLUMNS = [
    ("To Do", "#6366f1"),
    ("In Progress", "#0d9488"),
    ("In Review", "#8b5cf6"),
    ("Done", "#22c55e"),
]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


async def list_projects(session: AsyncSession, user_id: uuid.UUID) -> List[ProjectSummary]:
    task_count = (
        select(func.count(Task.id))
        .where(Task.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )
    member_count = (
        select(func.count(ProjectMember.user_id))
        .where(ProjectMember.project_id == Project.id)
        .correlate(Project)
        .scalar_subquery()
    )
    result = await session.execute(
        select(Project, task_count, member_count)
        .where(Project.id.in_(accessible_project_ids(user_id)))
        .order_by(Project.updated_at.desc())
    )
    return [
        ProjectSummary(
            **ProjectRead.model_validate(project).model_dump(),
            task_count=tasks,
            member_count=members,
        )
        for project, tasks, members in result.all()
    ]


async def create_project(session: AsyncSession, body: ProjectCreate, owner: User) -> Project:
    """Create a project with an owner membership and the default columns."""
    project = Project(name=body.name, description=body.description, owner_id=owner.id)
    session.add(project)
    await session.flush()

    session.add(ProjectMember(project_id=project.id, user_id=owner.id, role=MemberRole.OWNER.value))
    for position, (name, color) in enumerate(DEFAULT_COLUMNS):
        session.add(BoardColumn(project_id=project.id, name=name, color=color, position=position))
    await session.flush()

    log.info("project.created", project_id=str(project.id), owner_id=str(owner.id))
    return project


async def update_project(session: AsyncSession, project: Project, body: ProjectUpdate) -> Project:
    data = body.model_dump(exclude_unset=True)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="Project name is required")
        data["name"] = name
    if "is_archived" in data and data["is_archived"] is None:
        data.pop("is_archived")
    for key, value in data.items():
        setattr(project, key, value)
    session.add(project)
    await session.flush()
    return project


async def delete_project(session: AsyncSession, project: Project) -> None:
    """Delete a project; the database cascades to everything it owns."""
    project_id = project.id
    await session.delete(project)
    await session.flush()
    log.info("project.deleted", project_id=str(project_id))


# ---------------------------------------------------------------------------
# Board
# ---------------------------------------------------------------------------


async def list_columns(session: AsyncSession, project_id: uuid.UUID) -> List[BoardColumn]:
    result = await session.execute(
        select(BoardColumn)
        .where(BoardColumn.project_id == project_id)
        .order_by(BoardColumn.position)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_members(session: AsyncSession, project_id: uuid.UUID) -> List[ProjectMemberRead]:
    result = await session.execute(
        select(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.joined_at)
    )
    return [
        ProjectMemberRead(
            user_id=user.id,
            role=member.role,
            full_name=user.full_name,
            email=user.email,
            avatar_url=user.avatar_url,
            joined_at=member.joined_at,
        )
        for member, user in result.all()
    ]


async def get_board(session: AsyncSession, project: Project) -> BoardRead:
    """Project with ordered columns, each with ordered tasks, plus members.

    Positions are checked but returned as stored.
    """
    columns = await list_columns(session, project.id)
    positions.verify_positions(
        positions.COLUMNS_IN_PROJECT, project.id, [c.position for c in columns]
    )

    result = await session.execute(
        select(Task, User.full_name)
        .outerjoin(User, User.id == Task.assignee_id)
        .where(Task.project_id == project.id)
        .order_by(Task.position)
        .execution_options(populate_existing=True)
    )
    by_column: Dict[uuid.UUID, List[TaskRead]] = defaultdict(list)
    for task, assignee_name in result.all():
        by_column[task.column_id].append(to_task_read(task, assignee_name))

    board_columns = []
    for column in columns:
        tasks = by_column.get(column.id, [])
        positions.verify_positions(
            positions.TASKS_IN_COLUMN, column.id, [t.position for t in tasks]
        )
        board_columns.append(
            BoardColumnRead(
                **ColumnRead.model_validate(column).model_dump(),
                tasks=tasks,
                over_wip_limit=column.wip_limit is not None and len(tasks) > column.wip_limit,
            )
        )

    return BoardRead(
        project=ProjectRead.model_validate(project),
        columns=board_columns,
        members=await list_members(session, project.id),
    )


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def add_member(
    session: AsyncSession, project: Project, body: ProjectMemberAdd, actor_id: uuid.UUID
) -> ProjectMemberRead:
    if body.user_id is not None:
        user = await session.get(User, body.user_id)
    else:
        result = await session.execute(select(User).where(User.email == body.email.lower()))
        user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == project.owner_id or await get_membership(session, project.id, user.id):
        raise HTTPException(status_code=409, detail="User is already a member of this project")

    member = ProjectMember(project_id=project.id, user_id=user.id, role=body.role.value)
    session.add(member)
    await session.flush()

    await record_activity(
        session,
        project_id=project.id,
        user_id=actor_id,
        details=MemberAddedDetails(user_id=user.id, role=body.role),
    )
    log.info("project.member_added", project_id=str(project.id), user_id=str(user.id), role=body.role.value)
    return ProjectMemberRead(
        user_id=user.id,
        role=member.role,
        full_name=user.full_name,
        email=user.email,
        avatar_url=user.avatar_url,
        joined_at=member.joined_at,
    )


async def remove_member(
    session: AsyncSession, project: Project, user_id: uuid.UUID, actor_id: uuid.UUID
) -> None:
    if user_id == project.owner_id:
        raise HTTPException(status_code=400, detail="The project owner cannot be removed")
    member = await get_membership(session, project.id, user_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Member not found")

    await session.delete(member)
    await session.flush()
    await record_activity(
        session,
        project_id=project.id,
        user_id=actor_id,
        details=MemberRemovedDetails(user_id=user_id),
    )
    log.info("project.member_removed", project_id=str(project.id), user_id=str(user_id))
