"""
Optimistic move reconciler.

A drag-end is applied to the ``BoardStore`` immediately and then sent to the
server. Each move goes ``IDLE -> OPTIMISTICALLY_APPLIED`` and settles as
``CONFIRMED`` or ``ROLLED_BACK``.

Overlapping moves are allowed. The rollback baseline is the board as it was
before the first of the currently in-flight moves, so a rollback always lands
on the last state the server is known to agree with, never on an intermediate
optimistic one. The baseline is dropped once nothing is in flight. Every
settle with nothing left in flight schedules a refresh from the server, which
reconciles exact positions and any overlapping move that succeeded after a
rollback.

Moves are never cancelled. After ``close()`` late results are ignored.
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from .api import APIError, BoardAPI
from .store import BoardLoaded, BoardStore, BoardView, ColumnMoved, Restore, TaskMoved

log = structlog.get_logger()

ErrorCallback = Callable[[APIError], None]


class MoveStatus(str, Enum):
    IDLE = "idle"
    OPTIMISTICALLY_APPLIED = "optimistically_applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class PendingMove:
    id: int
    kind: str  # "task" | "column"
    item_id: uuid.UUID
    status: MoveStatus = MoveStatus.IDLE


class MoveReconciler:
    def __init__(
        self,
        api: BoardAPI,
        store: BoardStore,
        project_id: uuid.UUID,
        *,
        request_timeout: float = 5.0,
        on_error: Optional[ErrorCallback] = None,
    ):
        self._api = api
        self._store = store
        self._project_id = project_id
        self._timeout = request_timeout
        self._on_error = on_error
        self._baseline: Optional[BoardView] = None
        self._in_flight = 0
        self._closed = False
        self._ids = itertools.count(1)
        self._background: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def baseline(self) -> Optional[BoardView]:
        return self._baseline

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Lifecycle ---

    async def load(self) -> Optional[BoardView]:
        """Fetch the board and replace the store's state with it."""
        board = await self._api.get_board(self._project_id)
        # Moves in flight keep their optimistic state; the settle refresh catches up.
        if self._closed or self._in_flight:
            return self._store.state
        return self._store.dispatch(BoardLoaded(BoardView.from_read(board)))

    def close(self) -> None:
        """Stop applying results; requests already sent still complete."""
        self._closed = True
        log.debug("reconciler.closed", in_flight=self._in_flight)

    async def drain(self) -> None:
        """Wait for every outstanding request and refresh (tests, shutdown)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # --- Moves ---

    def move_task(self, task_id: uuid.UUID, column_id: uuid.UUID, index: int) -> asyncio.Task:
        """Apply a task drop locally and send it. Returns the request task."""
        move = PendingMove(next(self._ids), "task", task_id)
        board = self._apply(move, TaskMoved(task_id, column_id, index))
        found = board.locate_task(task_id) if board is not None else None
        # Send the index the reducer actually used, which is always in range.
        if found is not None and board.columns[found[0]].id == column_id:
            position = found[1]
        else:
            position = max(0, index)
        return self._spawn(self._send(move, lambda: self._api.move_task(task_id, column_id, position)))

    def reorder_column(self, column_id: uuid.UUID, index: int) -> asyncio.Task:
        """Apply a column drop locally and send it. Returns the request task."""
        move = PendingMove(next(self._ids), "column", column_id)
        board = self._apply(move, ColumnMoved(column_id, index))
        found = board.column_index(column_id) if board is not None else None
        position = found if found is not None else max(0, index)
        return self._spawn(self._send(move, lambda: self._api.reorder_column(column_id, position)))

    def _apply(self, move: PendingMove, action: TaskMoved | ColumnMoved) -> Optional[BoardView]:
        if self._in_flight == 0:
            self._baseline = self._store.state
        self._in_flight += 1
        board = self._store.dispatch(action)
        move.status = MoveStatus.OPTIMISTICALLY_APPLIED
        log.debug("reconciler.applied", move_id=move.id, kind=move.kind, item_id=str(move.item_id))
        return board

    async def _send(self, move: PendingMove, call: Callable[[], Awaitable[object]]) -> MoveStatus:
        # Anything other than a clean response counts as a failed move, and the
        # move always settles so the baseline is released.
        error: Optional[APIError] = APIError(0, "Move request failed")
        try:
            await asyncio.wait_for(call(), timeout=self._timeout)
            error = None
        except asyncio.TimeoutError:
            error = APIError(0, "Request timed out")
        except APIError as exc:
            error = exc
        finally:
            self._settle(move, error)
        return move.status

    def _settle(self, move: PendingMove, error: Optional[APIError]) -> None:
        self._in_flight -= 1
        move.status = MoveStatus.CONFIRMED if error is None else MoveStatus.ROLLED_BACK
        if self._closed:
            return

        if error is not None:
            self._rollback(move, error)
        else:
            log.debug("reconciler.confirmed", move_id=move.id, kind=move.kind)

        if self._in_flight == 0:
            self._baseline = None
            self._spawn(self._refresh())

    def _rollback(self, move: PendingMove, error: APIError) -> None:
        if self._baseline is not None:
            self._store.dispatch(Restore(self._baseline))
        log.warning(
            "reconciler.rolled_back",
            move_id=move.id,
            kind=move.kind,
            item_id=str(move.item_id),
            status=error.status,
            error=error.message,
        )
        if self._on_error is not None:
            self._on_error(error)

    async def _refresh(self) -> None:
        try:
            board = await asyncio.wait_for(self._api.get_board(self._project_id), timeout=self._timeout)
        except (APIError, asyncio.TimeoutError) as exc:
            log.warning("reconciler.refresh_failed", project_id=str(self._project_id), error=str(exc))
            return
        # A move started while the refresh was running will schedule its own.
        if self._closed or self._in_flight:
            return
        self._store.dispatch(BoardLoaded(BoardView.from_read(board)))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
