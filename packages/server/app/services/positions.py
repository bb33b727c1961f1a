"""
Position reindexing engine.

Keeps ``position`` dense and zero-based inside a container:

- tasks inside a column (``TASKS_IN_COLUMN``)
- columns inside a project (``COLUMNS_IN_PROJECT``)

For every container, the positions of its direct children are exactly
``{0, 1, ..., n-1}`` between transactions. All functions here issue their
writes on the caller's session and never commit; the request's session
dependency commits once, so a failure anywhere rolls back every shift.

Writers serialize on a row lock (``SELECT ... FOR UPDATE``) on the container's
parent row: the column for its tasks, the project for its columns. SQLite has
no row locks and ignores ``FOR UPDATE``; a writer there holds the database
write lock instead.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import structlog
from fastapi import HTTPException
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from app.models.column import BoardColumn
from app.models.project import Project
from app.models.task import Task

log = structlog.get_logger()


@dataclass(frozen=True)
class Container:
    """Describes one kind of ordered container."""

    name: str
    model: type[SQLModel]  # the ordered children
    key: str  # child attribute naming the container
    parent: type[SQLModel]  # row locked while reindexing


TASKS_IN_COLUMN = Container("tasks_in_column", Task, "column_id", BoardColumn)
COLUMNS_IN_PROJECT = Container("columns_in_project", BoardColumn, "project_id", Project)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def lock_statement(container: Container, container_id: uuid.UUID):
    """``SELECT ... FOR UPDATE`` on the container's parent row."""
    parent = container.parent
    return select(parent.id).where(parent.id == container_id).with_for_update()


async def lock_container(
    session: AsyncSession, container: Container, container_id: uuid.UUID
) -> None:
    """Take the row lock on the container's parent row for the rest of the transaction."""
    parent = container.parent
    result = await session.execute(lock_statement(container, container_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail=f"{parent.__name__} not found")


async def lock_containers(
    session: AsyncSession, container: Container, container_ids: Iterable[uuid.UUID]
) -> None:
    """Lock several containers in a deterministic (sorted id) order."""
    for cid in sorted(set(container_ids), key=str):
        await lock_container(session, container, cid)


async def count_items(
    session: AsyncSession, container: Container, container_id: uuid.UUID
) -> int:
    model = container.model
    result = await session.execute(
        select(func.count()).select_from(model).where(
            getattr(model, container.key) == container_id
        )
    )
    return result.scalar_one()


async def _shift(
    session: AsyncSession,
    container: Container,
    container_id: uuid.UUID,
    delta: int,
    *,
    low: int,
    high: Optional[int] = None,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    """Add ``delta`` to every sibling with ``low <= position [<= high]``."""
    model = container.model
    stmt = update(model).where(
        getattr(model, container.key) == container_id,
        model.position >= low,
    )
    if high is not None:
        stmt = stmt.where(model.position <= high)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    stmt = stmt.values(position=model.position + delta).execution_options(
        synchronize_session="fetch"
    )
    await session.execute(stmt)


def _check_range(position: int, upper: int) -> None:
    if position < 0 or position > upper:
        raise HTTPException(
            status_code=400,
            detail=f"Position must be between 0 and {upper}",
        )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def next_position(
    session: AsyncSession, container: Container, container_id: uuid.UUID
) -> int:
    """Position for a new item appended to the container (max + 1, or 0 if empty).

    Locks the container first; the caller must insert in the same transaction.
    """
    await lock_container(session, container, container_id)
    model = container.model
    result = await session.execute(
        select(func.max(model.position)).where(
            getattr(model, container.key) == container_id
        )
    )
    current = result.scalar_one_or_none()
    return 0 if current is None else current + 1


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------


async def move_within(
    session: AsyncSession, container: Container, item: SQLModel, position: int
) -> bool:
    """Move ``item`` to ``position`` inside its current container.

    Valid targets are ``0..n-1``. Returns False (and writes nothing) when the
    item is already there.
    """
    container_id = getattr(item, container.key)
    await lock_container(session, container, container_id)
    await session.refresh(item)
    if getattr(item, container.key) != container_id:
        raise HTTPException(status_code=409, detail="Item was moved concurrently, please retry")

    size = await count_items(session, container, container_id)
    _check_range(position, size - 1)

    old = item.position
    if position == old:
        return False

    if position < old:
        await _shift(session, container, container_id, +1, low=position, high=old - 1, exclude_id=item.id)
    else:
        await _shift(session, container, container_id, -1, low=old + 1, high=position, exclude_id=item.id)

    item.position = position
    session.add(item)
    await session.flush()
    log.debug(
        "positions.moved",
        container=container.name,
        container_id=str(container_id),
        item_id=str(item.id),
        from_position=old,
        to_position=position,
    )
    return True


async def move_task(
    session: AsyncSession, task: Task, column_id: uuid.UUID, position: int
) -> bool:
    """Move a task to ``position`` in ``column_id`` (same or another column).

    Same column: valid targets are ``0..n-1``. Another column: ``0..m`` where
    ``m`` is the destination size. Returns False for a no-op.
    """
    if column_id == task.column_id:
        return await move_within(session, TASKS_IN_COLUMN, task, position)

    source_id = task.column_id
    await lock_containers(session, TASKS_IN_COLUMN, [source_id, column_id])
    await session.refresh(task)

    if task.column_id != source_id:
        raise HTTPException(status_code=409, detail="Item was moved concurrently, please retry")

    size = await count_items(session, TASKS_IN_COLUMN, column_id)
    _check_range(position, size)

    old = task.position
    await _shift(session, TASKS_IN_COLUMN, source_id, -1, low=old + 1, exclude_id=task.id)
    await _shift(session, TASKS_IN_COLUMN, column_id, +1, low=position)

    task.column_id = column_id
    task.position = position
    session.add(task)
    await session.flush()
    log.debug(
        "positions.moved",
        container=TASKS_IN_COLUMN.name,
        item_id=str(task.id),
        from_container=str(source_id),
        to_container=str(column_id),
        from_position=old,
        to_position=position,
    )
    return True


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def remove_item(session: AsyncSession, container: Container, item: SQLModel) -> None:
    """Delete ``item`` and close the gap it leaves."""
    container_id = getattr(item, container.key)
    await lock_container(session, container, container_id)
    await session.refresh(item)
    old = item.position

    await session.delete(item)
    await session.flush()
    await _shift(session, container, container_id, -1, low=old + 1)


# ---------------------------------------------------------------------------
# Read-time integrity check
# ---------------------------------------------------------------------------


def verify_positions(
    container: Container, container_id: uuid.UUID, positions: Sequence[int]
) -> bool:
    """Report (never repair) a container whose positions are not ``0..n-1``."""
    observed = sorted(positions)
    if observed == list(range(len(observed))):
        return True
    log.error(
        "positions.integrity_violation",
        container=container.name,
        container_id=str(container_id),
        positions=observed,
    )
    return False
