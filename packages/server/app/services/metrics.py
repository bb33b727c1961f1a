"""
Dashboard metrics across every project the caller can see.

"Done" and "in progress" are inferred from column names, case-insensitively.
"""

from __future__ import annotations

import uuid
from collections import Counter, defaultdict
from typing import Dict

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import utcnow
from app.models.column import BoardColumn
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services.access import accessible_project_ids
from kanban_shared.schemas.common import PRIORITY_ORDER
from kanban_shared.schemas.metrics import (
    DashboardStats,
    MetricsRead,
    PriorityCount,
    TeamPerformance,
)

DONE_COLUMN_NAMES = frozenset({"done", "completed", "finished"})
IN_PROGRESS_COLUMN_NAMES = frozenset({"in progress", "doing", "working"})
TEAM_PERFORMANCE_LIMIT = 10


def column_state(name: str) -> str:
    """Classify a column name as 'done', 'in_progress' or 'other'."""
    normalized = name.strip().lower()
    if normalized in DONE_COLUMN_NAMES:
        return "done"
    if normalized in IN_PROGRESS_COLUMN_NAMES:
        return "in_progress"
    return "other"


async def get_metrics(session: AsyncSession, user_id: uuid.UUID) -> MetricsRead:
    visible = accessible_project_ids(user_id)

    result = await session.execute(
        select(Task.priority, Task.assignee_id, Task.due_date, BoardColumn.name)
        .join(BoardColumn, BoardColumn.id == Task.column_id)
        .where(Task.project_id.in_(visible))
    )
    rows = result.all()

    now = utcnow()
    stats = DashboardStats(total_tasks=len(rows))
    priorities: Counter = Counter()
    team: Dict[uuid.UUID, Counter] = defaultdict(Counter)

    for priority, assignee_id, due_date, column_name in rows:
        state = column_state(column_name)
        if state == "done":
            stats.completed_tasks += 1
        elif state == "in_progress":
            stats.in_progress_tasks += 1
        if due_date is not None and due_date < now and state != "done":
            stats.overdue_tasks += 1
        priorities[priority] += 1
        if assignee_id is not None:
            counts = team[assignee_id]
            counts["total"] += 1
            counts[state] += 1

    result = await session.execute(
        select(func.count(Project.id), Project.is_archived)
        .where(Project.id.in_(visible))
        .group_by(Project.is_archived)
    )
    for count, archived in result.all():
        stats.total_projects += count
        if not archived:
            stats.active_projects += count

    priority_distribution = [
        PriorityCount(priority=p.value, count=priorities[p.value])
        for p in PRIORITY_ORDER
        if priorities[p.value]
    ]

    ranked = sorted(team.items(), key=lambda item: (-item[1]["done"], -item[1]["total"]))
    ranked = ranked[:TEAM_PERFORMANCE_LIMIT]
    users: Dict[uuid.UUID, User] = {}
    if ranked:
        result = await session.execute(select(User).where(User.id.in_([uid for uid, _ in ranked])))
        users = {u.id: u for u in result.scalars().all()}

    team_performance = [
        TeamPerformance(
            user_id=uid,
            name=users[uid].full_name if uid in users else "Unassigned",
            avatar=users[uid].avatar_url if uid in users else None,
            completed=counts["done"],
            in_progress=counts["in_progress"],
            total=counts["total"],
        )
        for uid, counts in ranked
    ]

    return MetricsRead(
        stats=stats,
        priority_distribution=priority_distribution,
        team_performance=team_performance,
    )
