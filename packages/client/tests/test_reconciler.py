"""Tests for optimistic moves and rollback."""

import asyncio

import httpx
import pytest
from structlog.testing import capture_logs

from kanban_client.api import APIError, BoardAPI
from kanban_client.reconciler import MoveReconciler, MoveStatus
from kanban_client.store import BoardLoaded, BoardStore, BoardView
from kanban_shared.schemas.common import APIResponse

from board_fixtures import PROJECT_ID, board_payload, board_read, column_id, task_id


class FakeAPI:
    """Board API whose move requests stay pending until the test settles them."""

    def __init__(self, board):
        self.board = board
        self.board_error: Exception | None = None
        self.board_calls = 0
        self.board_gate: asyncio.Event | None = None
        self.pending: list[tuple[str, tuple, asyncio.Future]] = []

    async def get_board(self, project_id):
        assert project_id == PROJECT_ID
        self.board_calls += 1
        if self.board_gate is not None:
            await self.board_gate.wait()
        if self.board_error is not None:
            raise self.board_error
        return self.board

    async def move_task(self, task_id, column_id, position):
        return await self._call("move_task", task_id, column_id, position)

    async def reorder_column(self, column_id, position):
        return await self._call("reorder_column", column_id, position)

    async def _call(self, name, *args):
        fut = asyncio.get_running_loop().create_future()
        self.pending.append((name, args, fut))
        return await fut

    async def wait_for_calls(self, n: int):
        for _ in range(100):
            if len(self.pending) >= n:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {n} requests, saw {len(self.pending)}")

    def succeed(self, i: int):
        self.pending[i][2].set_result(APIResponse(message="ok"))

    def fail(self, i: int, status: int = 400, message: str = "Position must be between 0 and 2"):
        self.pending[i][2].set_exception(APIError(status, message))


@pytest.fixture
def initial(layout) -> BoardView:
    return BoardView.from_read(board_read(layout))


@pytest.fixture
def fake(layout) -> FakeAPI:
    return FakeAPI(board_read(layout))


@pytest.fixture
def errors() -> list[APIError]:
    return []


@pytest.fixture
def store(initial) -> BoardStore:
    s = BoardStore()
    s.dispatch(BoardLoaded(initial))
    return s


@pytest.fixture
async def reconciler(fake, store, errors):
    r = MoveReconciler(fake, store, PROJECT_ID, request_timeout=1.0, on_error=errors.append)
    yield r
    r.close()
    for _, _, fut in fake.pending:
        if not fut.done():
            fut.cancel()
    await r.drain()


async def test_load_fills_store(fake, errors):
    store = BoardStore()
    r = MoveReconciler(fake, store, PROJECT_ID, on_error=errors.append)
    board = await r.load()
    assert board is store.state
    assert board.titles()["To Do"] == ["A", "B", "C"]


async def test_move_is_applied_before_response(reconciler, store, fake, initial):
    reconciler.move_task(task_id("A"), column_id("Done"), 1)

    # No await yet: the drop is already visible.
    assert store.state.titles()["To Do"] == ["B", "C"]
    assert store.state.titles()["Done"] == ["E", "A", "F"]
    assert reconciler.in_flight == 1
    assert reconciler.baseline is initial

    await fake.wait_for_calls(1)
    name, args, _ = fake.pending[0]
    assert name == "move_task"
    assert args == (task_id("A"), column_id("Done"), 1)


async def test_confirmed_move_refreshes_from_server(reconciler, store, fake, layout, errors):
    request = reconciler.move_task(task_id("A"), column_id("Done"), 1)
    await fake.wait_for_calls(1)

    layout["To Do"].remove("A")
    layout["Done"].insert(1, "A")
    fake.board = board_read(layout)
    fake.succeed(0)

    assert await request == MoveStatus.CONFIRMED
    await reconciler.drain()

    assert errors == []
    assert reconciler.baseline is None
    assert fake.board_calls == 1
    assert store.state == BoardView.from_read(fake.board)


async def test_failed_move_rolls_back(reconciler, store, fake, initial, errors):
    request = reconciler.move_task(task_id("A"), column_id("Done"), 1)
    await fake.wait_for_calls(1)

    with capture_logs() as logs:
        fake.fail(0, 409, "Task was modified concurrently")
        assert await request == MoveStatus.ROLLED_BACK

    assert store.state == initial
    assert [(e.status, e.message) for e in errors] == [(409, "Task was modified concurrently")]
    assert any(e["event"] == "reconciler.rolled_back" and e["status"] == 409 for e in logs)

    await reconciler.drain()
    assert store.state == initial
    assert reconciler.in_flight == 0


async def test_rollback_preserves_identity_of_tasks(reconciler, store, fake, initial):
    request = reconciler.move_task(task_id("C"), column_id("To Do"), 0)
    await fake.wait_for_calls(1)
    fake.fail(0)
    await request

    restored = store.state.columns[0].tasks
    assert [t.id for t in restored] == [t.id for t in initial.columns[0].tasks]
    assert [t.position for t in restored] == [0, 1, 2]


async def test_overlapping_moves_roll_back_to_first_baseline(reconciler, store, fake, initial, errors):
    first = reconciler.move_task(task_id("A"), column_id("Review"), 0)
    second = reconciler.move_task(task_id("E"), column_id("To Do"), 0)
    await fake.wait_for_calls(2)

    assert reconciler.in_flight == 2
    assert reconciler.baseline is initial
    assert store.state.titles()["To Do"] == ["E", "B", "C"]

    fake.fail(1)
    assert await second == MoveStatus.ROLLED_BACK

    # Restored to the state before either move; the first is still pending.
    assert store.state == initial
    assert reconciler.in_flight == 1
    assert reconciler.baseline is initial
    assert fake.board_calls == 0

    fake.succeed(0)
    assert await first == MoveStatus.CONFIRMED
    await reconciler.drain()

    assert len(errors) == 1
    assert reconciler.baseline is None
    assert fake.board_calls == 1


async def test_timeout_rolls_back(fake, store, initial, errors):
    reconciler = MoveReconciler(fake, store, PROJECT_ID, request_timeout=0.05, on_error=errors.append)
    request = reconciler.move_task(task_id("B"), column_id("In Progress"), 0)

    assert await request == MoveStatus.ROLLED_BACK
    assert store.state == initial
    assert [(e.status, e.message) for e in errors] == [(0, "Request timed out")]
    await reconciler.drain()


async def test_column_reorder_rolls_back(reconciler, store, fake, initial, errors):
    request = reconciler.reorder_column(column_id("Done"), 0)
    assert [c.name for c in store.state.columns][0] == "Done"

    await fake.wait_for_calls(1)
    assert fake.pending[0][0] == "reorder_column"
    fake.fail(0, 404, "Column not found or access denied")

    assert await request == MoveStatus.ROLLED_BACK
    assert store.state == initial
    assert errors[0].status == 404


async def test_results_after_close_are_ignored(reconciler, store, fake, errors):
    request = reconciler.move_task(task_id("A"), column_id("Done"), 0)
    await fake.wait_for_calls(1)
    optimistic = store.state

    reconciler.close()
    fake.fail(0)
    assert await request == MoveStatus.ROLLED_BACK
    await reconciler.drain()

    assert store.state is optimistic
    assert errors == []
    assert fake.board_calls == 0


async def test_refresh_failure_keeps_state(reconciler, store, fake):
    request = reconciler.move_task(task_id("A"), column_id("Done"), 0)
    await fake.wait_for_calls(1)
    optimistic = store.state

    fake.board_error = APIError(0, "Network error: connection refused")
    with capture_logs() as logs:
        fake.succeed(0)
        await request
        await reconciler.drain()

    assert store.state is optimistic
    assert any(e["event"] == "reconciler.refresh_failed" for e in logs)


async def test_refresh_skipped_while_new_move_in_flight(reconciler, store, fake):
    first = reconciler.move_task(task_id("A"), column_id("Done"), 0)
    await fake.wait_for_calls(1)
    fake.board_gate = asyncio.Event()
    fake.succeed(0)
    await first

    # A new drop lands before the scheduled refresh returns.
    reconciler.move_task(task_id("B"), column_id("Review"), 0)
    await fake.wait_for_calls(2)
    fake.board_gate.set()
    for _ in range(10):
        await asyncio.sleep(0)

    assert fake.board_calls == 1
    assert store.state.titles()["Review"] == ["B"]
    assert reconciler.in_flight == 1


async def test_drop_past_end_sends_clamped_position(reconciler, store, fake):
    reconciler.move_task(task_id("A"), column_id("Review"), 5)
    reconciler.move_task(task_id("B"), column_id("Done"), 9)
    reconciler.reorder_column(column_id("To Do"), -3)
    await fake.wait_for_calls(3)

    assert store.state.titles()["Review"] == ["A"]
    assert store.state.titles()["Done"] == ["E", "F", "B"]
    assert [args for _, args, _ in fake.pending] == [
        (task_id("A"), column_id("Review"), 0),
        (task_id("B"), column_id("Done"), 2),
        (column_id("To Do"), 0),
    ]


async def test_unexpected_error_still_settles(reconciler, store, fake, initial, errors):
    request = reconciler.move_task(task_id("A"), column_id("Done"), 0)
    await fake.wait_for_calls(1)
    fake.pending[0][2].set_exception(RuntimeError("decoder blew up"))

    with pytest.raises(RuntimeError):
        await request
    await reconciler.drain()

    assert reconciler.in_flight == 0
    assert reconciler.baseline is None
    assert store.state == initial
    assert [e.status for e in errors] == [0]
    assert fake.board_calls == 1


async def test_non_json_success_rolls_back(store, initial, errors, layout):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=board_payload(layout))
        return httpx.Response(200, text="OK")

    async with BoardAPI("http://kanban.test", "tok", transport=httpx.MockTransport(handler)) as api:
        reconciler = MoveReconciler(api, store, PROJECT_ID, on_error=errors.append)
        status = await reconciler.move_task(task_id("A"), column_id("Done"), 0)
        await reconciler.drain()

    assert status == MoveStatus.ROLLED_BACK
    assert reconciler.in_flight == 0
    assert reconciler.baseline is None
    assert store.state == initial
    assert errors[0].status == 200


async def test_load_waits_for_moves_in_flight(reconciler, store, fake):
    reconciler.move_task(task_id("A"), column_id("Done"), 0)
    optimistic = store.state
    await fake.wait_for_calls(1)

    assert await reconciler.load() is optimistic
    assert store.state is optimistic
    assert reconciler.baseline is not None
