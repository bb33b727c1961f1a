"""
Tests for the position reindexing engine (app.services.positions).

Covers:
- Append on create
- Same-column and cross-column moves
- Gap closing on delete
- Range validation and no-op moves
- Dense 0..n-1 positions across a random sequence of operations
- Read-time integrity reporting
"""

from __future__ import annotations

import random
import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy.dialects import postgresql
from sqlmodel import select
from structlog.testing import capture_logs

from app.models.column import BoardColumn
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.services import columns as columns_service
from app.services import positions


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
async def project(session):
    user = User(email="owner@example.com", password_hash="x", full_name="Owner")
    session.add(user)
    await session.flush()
    project = Project(name="Board", owner_id=user.id)
    session.add(project)
    await session.flush()
    return project


async def add_column(session, project, name):
    position = await positions.next_position(session, positions.COLUMNS_IN_PROJECT, project.id)
    column = BoardColumn(project_id=project.id, name=name, position=position)
    session.add(column)
    await session.flush()
    return column


async def add_task(session, column, title):
    position = await positions.next_position(session, positions.TASKS_IN_COLUMN, column.id)
    task = Task(
        project_id=column.project_id,
        column_id=column.id,
        title=title,
        position=position,
        created_by=(await session.get(Project, column.project_id)).owner_id,
    )
    session.add(task)
    await session.flush()
    return task


async def titles(session, column):
    """Task titles in the column, ordered by position."""
    result = await session.execute(
        select(Task.title, Task.position).where(Task.column_id == column.id).order_by(Task.position)
    )
    rows = result.all()
    assert [p for _, p in rows] == list(range(len(rows)))
    return [t for t, _ in rows]


async def column_names(session, project):
    result = await session.execute(
        select(BoardColumn.name, BoardColumn.position)
        .where(BoardColumn.project_id == project.id)
        .order_by(BoardColumn.position)
    )
    rows = result.all()
    assert [p for _, p in rows] == list(range(len(rows)))
    return [n for n, _ in rows]


async def filled_column(session, project, name, task_titles):
    column = await add_column(session, project, name)
    tasks = {}
    for title in task_titles:
        tasks[title] = await add_task(session, column, title)
    return column, tasks


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestAppend:
    async def test_first_task_gets_zero_then_one(self, session, project):
        column = await add_column(session, project, "To Do")
        first = await add_task(session, column, "a")
        second = await add_task(session, column, "b")
        assert (first.position, second.position) == (0, 1)

    async def test_columns_append_in_project(self, session, project):
        for name in ("To Do", "Doing", "Done"):
            await add_column(session, project, name)
        assert await column_names(session, project) == ["To Do", "Doing", "Done"]

    async def test_missing_container_is_404(self, session, project):
        with pytest.raises(HTTPException) as exc:
            await positions.next_position(session, positions.TASKS_IN_COLUMN, uuid.uuid4())
        assert exc.value.status_code == 404


# ---------------------------------------------------------------------------
# Move within a column
# ---------------------------------------------------------------------------


class TestMoveWithinColumn:
    async def test_move_up(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b", "c", "d"])
        moved = await positions.move_task(session, tasks["d"], column.id, 1)
        assert moved is True
        assert await titles(session, column) == ["a", "d", "b", "c"]

    async def test_move_down(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b", "c", "d"])
        await positions.move_task(session, tasks["a"], column.id, 2)
        assert await titles(session, column) == ["b", "c", "a", "d"]

    async def test_move_to_last(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b", "c"])
        await positions.move_task(session, tasks["a"], column.id, 2)
        assert await titles(session, column) == ["b", "c", "a"]

    async def test_noop_returns_false(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b", "c"])
        moved = await positions.move_task(session, tasks["b"], column.id, 1)
        assert moved is False
        assert await titles(session, column) == ["a", "b", "c"]

    async def test_position_n_is_out_of_range(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b", "c"])
        with pytest.raises(HTTPException) as exc:
            await positions.move_task(session, tasks["a"], column.id, 3)
        assert exc.value.status_code == 400
        assert "between 0 and 2" in exc.value.detail
        assert await titles(session, column) == ["a", "b", "c"]

    async def test_negative_position_rejected(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b"])
        with pytest.raises(HTTPException) as exc:
            await positions.move_task(session, tasks["a"], column.id, -1)
        assert exc.value.status_code == 400


# ---------------------------------------------------------------------------
# Move across columns
# ---------------------------------------------------------------------------


class TestMoveAcrossColumns:
    async def test_move_into_middle(self, session, project):
        col_a, tasks_a = await filled_column(session, project, "A", ["a0", "a1", "a2"])
        col_b, _ = await filled_column(session, project, "B", ["b0", "b1"])

        moved = await positions.move_task(session, tasks_a["a1"], col_b.id, 1)

        assert moved is True
        assert await titles(session, col_a) == ["a0", "a2"]
        assert await titles(session, col_b) == ["b0", "a1", "b1"]
        assert tasks_a["a1"].column_id == col_b.id
        assert tasks_a["a1"].position == 1

    async def test_append_at_destination_size(self, session, project):
        col_a, tasks_a = await filled_column(session, project, "A", ["a0"])
        col_b, _ = await filled_column(session, project, "B", ["b0", "b1"])
        await positions.move_task(session, tasks_a["a0"], col_b.id, 2)
        assert await titles(session, col_a) == []
        assert await titles(session, col_b) == ["b0", "b1", "a0"]

    async def test_into_empty_column(self, session, project):
        col_a, tasks_a = await filled_column(session, project, "A", ["a0", "a1"])
        col_b = await add_column(session, project, "B")
        await positions.move_task(session, tasks_a["a0"], col_b.id, 0)
        assert await titles(session, col_a) == ["a1"]
        assert await titles(session, col_b) == ["a0"]

    async def test_past_destination_size_rejected(self, session, project):
        col_a, tasks_a = await filled_column(session, project, "A", ["a0"])
        col_b, _ = await filled_column(session, project, "B", ["b0", "b1"])
        with pytest.raises(HTTPException) as exc:
            await positions.move_task(session, tasks_a["a0"], col_b.id, 3)
        assert exc.value.status_code == 400
        assert await titles(session, col_a) == ["a0"]
        assert await titles(session, col_b) == ["b0", "b1"]


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


class TestRemove:
    async def test_delete_closes_gap(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b", "c", "d"])
        await positions.remove_item(session, positions.TASKS_IN_COLUMN, tasks["b"])
        assert await titles(session, column) == ["a", "c", "d"]

    async def test_delete_last(self, session, project):
        column, tasks = await filled_column(session, project, "A", ["a", "b"])
        await positions.remove_item(session, positions.TASKS_IN_COLUMN, tasks["b"])
        assert await titles(session, column) == ["a"]

    async def test_delete_column_reindexes_project(self, session, project):
        for name in ("A", "B", "C"):
            await add_column(session, project, name)
        result = await session.execute(select(BoardColumn).where(BoardColumn.name == "A"))
        await positions.remove_item(session, positions.COLUMNS_IN_PROJECT, result.scalar_one())
        assert await column_names(session, project) == ["B", "C"]


# ---------------------------------------------------------------------------
# Columns inside a project
# ---------------------------------------------------------------------------


class TestColumnMoves:
    async def test_reorder_column(self, session, project):
        cols = [await add_column(session, project, name) for name in ("A", "B", "C", "D")]
        moved = await positions.move_within(session, positions.COLUMNS_IN_PROJECT, cols[3], 0)
        assert moved is True
        assert await column_names(session, project) == ["D", "A", "B", "C"]

    async def test_reorder_column_out_of_range(self, session, project):
        cols = [await add_column(session, project, name) for name in ("A", "B")]
        with pytest.raises(HTTPException) as exc:
            await positions.move_within(session, positions.COLUMNS_IN_PROJECT, cols[0], 2)
        assert exc.value.status_code == 400


# ---------------------------------------------------------------------------
# Row locks
# ---------------------------------------------------------------------------


@pytest.fixture
def lock_calls(monkeypatch):
    """Record every parent-row lock taken through ``lock_container``."""
    calls = []
    original = positions.lock_container

    async def recording(session, container, container_id):
        calls.append((container.name, container_id))
        await original(session, container, container_id)

    monkeypatch.setattr(positions, "lock_container", recording)
    return calls


class TestLocking:
    @pytest.mark.parametrize(
        "container", [positions.TASKS_IN_COLUMN, positions.COLUMNS_IN_PROJECT]
    )
    def test_lock_is_select_for_update_on_postgres(self, container):
        sql = str(positions.lock_statement(container, uuid.uuid4()).compile(dialect=postgresql.dialect()))
        assert sql.rstrip().endswith("FOR UPDATE")
        assert container.parent.__tablename__ in sql

    async def test_append_locks_column_before_counting(self, session, project, lock_calls):
        column = await add_column(session, project, "To Do")
        lock_calls.clear()
        await add_task(session, column, "a")
        assert lock_calls == [("tasks_in_column", column.id)]

    async def test_cross_column_move_locks_both_in_sorted_order(self, session, project, lock_calls):
        source, tasks = await filled_column(session, project, "Source", ["a"])
        dest = await add_column(session, project, "Dest")
        lock_calls.clear()
        await positions.move_task(session, tasks["a"], dest.id, 0)
        locked = [cid for name, cid in lock_calls if name == "tasks_in_column"]
        assert locked == sorted([source.id, dest.id], key=str)

    async def test_delete_column_locks_project_first(self, session, project, lock_calls):
        column = await add_column(session, project, "Empty")
        lock_calls.clear()
        await columns_service.delete_column(session, column)
        assert lock_calls[0] == ("columns_in_project", project.id)
        assert lock_calls[1] == ("tasks_in_column", column.id)
        assert await column_names(session, project) == []


# ---------------------------------------------------------------------------
# Invariant over arbitrary sequences
# ---------------------------------------------------------------------------


class TestDenseInvariant:
    async def test_random_sequence_keeps_positions_dense(self, session, project):
        rng = random.Random(1234)
        columns = [await add_column(session, project, name) for name in ("A", "B", "C")]
        expected: dict = {c.id: [] for c in columns}
        tasks: dict[str, Task] = {}

        for step in range(80):
            op = rng.choice(["create", "create", "move", "move", "delete"])
            if op == "create" or not tasks:
                column = rng.choice(columns)
                title = f"t{step}"
                tasks[title] = await add_task(session, column, title)
                expected[column.id].append(title)
            elif op == "move":
                title = rng.choice(sorted(tasks))
                task = tasks[title]
                source = expected[task.column_id]
                dest_id = rng.choice(columns).id
                upper = len(source) - 1 if dest_id == task.column_id else len(expected[dest_id])
                target = rng.randint(0, upper)
                await positions.move_task(session, task, dest_id, target)
                source.remove(title)
                expected[dest_id].insert(target, title)
            else:
                title = rng.choice(sorted(tasks))
                task = tasks.pop(title)
                expected[task.column_id].remove(title)
                await positions.remove_item(session, positions.TASKS_IN_COLUMN, task)

            for column in columns:
                assert await titles(session, column) == expected[column.id], f"step {step} ({op})"


# ---------------------------------------------------------------------------
# Read-time verification
# ---------------------------------------------------------------------------


class TestVerifyPositions:
    def test_dense_positions_pass(self):

        with capture_logs() as logs:
            assert positions.verify_positions(positions.TASKS_IN_COLUMN, uuid.uuid4(), [2, 0, 1])
        assert logs == []

    def test_empty_container_passes(self):

        assert positions.verify_positions(positions.TASKS_IN_COLUMN, uuid.uuid4(), [])

    def test_gap_is_reported(self):

        container_id = uuid.uuid4()
        with capture_logs() as logs:
            ok = positions.verify_positions(positions.COLUMNS_IN_PROJECT, container_id, [0, 2, 3])
        assert ok is False
        assert logs[0]["event"] == "positions.integrity_violation"
        assert logs[0]["log_level"] == "error"
        assert logs[0]["container"] == "columns_in_project"
        assert logs[0]["container_id"] == str(container_id)
        assert logs[0]["positions"] == [0, 2, 3]

    def test_duplicate_is_reported(self):

        assert not positions.verify_positions(positions.TASKS_IN_COLUMN, uuid.uuid4(), [0, 1, 1])
