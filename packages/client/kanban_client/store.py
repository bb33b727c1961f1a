"""
Client-side board state.

``BoardView`` is an immutable snapshot; ``reduce`` computes the next snapshot
from an action without side effects, so a snapshot kept as a rollback baseline
can never be mutated by later actions. ``BoardStore`` holds the current
snapshot and notifies subscribers on every change.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Callable, Optional, Union, assert_never

import structlog

from kanban_shared.schemas.projects import BoardRead

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskCard:
    id: uuid.UUID
    title: str
    column_id: uuid.UUID
    position: int
    priority: str = "medium"
    assignee_name: Optional[str] = None


@dataclass(frozen=True)
class ColumnView:
    id: uuid.UUID
    name: str
    position: int
    tasks: tuple[TaskCard, ...] = ()
    wip_limit: Optional[int] = None


@dataclass(frozen=True)
class BoardView:
    project_id: uuid.UUID
    name: str
    columns: tuple[ColumnView, ...] = ()

    @classmethod
    def from_read(cls, board: BoardRead) -> "BoardView":
        return cls(
            project_id=board.project.id,
            name=board.project.name,
            columns=tuple(
                ColumnView(
                    id=column.id,
                    name=column.name,
                    position=column.position,
                    wip_limit=column.wip_limit,
                    tasks=tuple(
                        TaskCard(
                            id=task.id,
                            title=task.title,
                            column_id=task.column_id,
                            position=task.position,
                            priority=task.priority.value,
                            assignee_name=task.assignee_name,
                        )
                        for task in sorted(column.tasks, key=lambda t: t.position)
                    ),
                )
                for column in sorted(board.columns, key=lambda c: c.position)
            ),
        )

    def column_index(self, column_id: uuid.UUID) -> Optional[int]:
        for i, column in enumerate(self.columns):
            if column.id == column_id:
                return i
        return None

    def locate_task(self, task_id: uuid.UUID) -> Optional[tuple[int, int]]:
        """``(column_index, task_index)`` of a task, or None."""
        for ci, column in enumerate(self.columns):
            for ti, task in enumerate(column.tasks):
                if task.id == task_id:
                    return ci, ti
        return None

    def titles(self) -> dict[str, list[str]]:
        """Column name to ordered task titles; handy for logging and tests."""
        return {c.name: [t.title for t in c.tasks] for c in self.columns}


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoardLoaded:
    board: BoardView


@dataclass(frozen=True)
class TaskMoved:
    task_id: uuid.UUID
    column_id: uuid.UUID
    index: int


@dataclass(frozen=True)
class ColumnMoved:
    column_id: uuid.UUID
    index: int


@dataclass(frozen=True)
class Restore:
    board: BoardView


Action = Union[BoardLoaded, TaskMoved, ColumnMoved, Restore]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


def _renumber_tasks(tasks: list[TaskCard], column_id: uuid.UUID) -> tuple[TaskCard, ...]:
    return tuple(replace(t, position=i, column_id=column_id) for i, t in enumerate(tasks))


def _move_task(state: BoardView, action: TaskMoved) -> BoardView:
    found = state.locate_task(action.task_id)
    dest = state.column_index(action.column_id)
    if found is None or dest is None:
        log.warning("store.unknown_move_target", task_id=str(action.task_id), column_id=str(action.column_id))
        return state
    src, ti = found

    columns = list(state.columns)
    source_tasks = list(columns[src].tasks)
    card = source_tasks.pop(ti)
    if src == dest:
        index = max(0, min(action.index, len(source_tasks)))
        source_tasks.insert(index, card)
        columns[src] = replace(columns[src], tasks=_renumber_tasks(source_tasks, columns[src].id))
    else:
        dest_tasks = list(columns[dest].tasks)
        index = max(0, min(action.index, len(dest_tasks)))
        dest_tasks.insert(index, card)
        columns[src] = replace(columns[src], tasks=_renumber_tasks(source_tasks, columns[src].id))
        columns[dest] = replace(columns[dest], tasks=_renumber_tasks(dest_tasks, columns[dest].id))
    return replace(state, columns=tuple(columns))


def _move_column(state: BoardView, action: ColumnMoved) -> BoardView:
    ci = state.column_index(action.column_id)
    if ci is None:
        log.warning("store.unknown_column", column_id=str(action.column_id))
        return state
    columns = list(state.columns)
    column = columns.pop(ci)
    columns.insert(max(0, min(action.index, len(columns))), column)
    return replace(
        state,
        columns=tuple(replace(c, position=i) for i, c in enumerate(columns)),
    )


def reduce(state: Optional[BoardView], action: Action) -> Optional[BoardView]:
    """Pure state transition: returns a new snapshot, never mutates ``state``."""
    if isinstance(action, (BoardLoaded, Restore)):
        return action.board
    elif isinstance(action, TaskMoved):
        return state if state is None else _move_task(state, action)
    elif isinstance(action, ColumnMoved):
        return state if state is None else _move_column(state, action)
    else:
        assert_never(action)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


Listener = Callable[[Optional[BoardView]], None]


class BoardStore:
    def __init__(self, state: Optional[BoardView] = None):
        self._state = state
        self._listeners: list[Listener] = []

    @property
    def state(self) -> Optional[BoardView]:
        return self._state

    def dispatch(self, action: Action) -> Optional[BoardView]:
        new_state = reduce(self._state, action)
        if new_state is not self._state:
            self._state = new_state
            for listener in list(self._listeners):
                listener(new_state)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
