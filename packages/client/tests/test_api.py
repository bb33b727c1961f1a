"""Tests for the HTTP board client."""

import json

import httpx
import pytest

from kanban_client.api import APIError, BoardAPI
from kanban_client.config import ServerConfig

from board_fixtures import PROJECT_ID, board_payload, column_id, task_id


def make_api(handler) -> BoardAPI:
    return BoardAPI("http://kanban.test/", "tok", transport=httpx.MockTransport(handler))


async def test_get_board_parses_payload(layout):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json=board_payload(layout))

    async with make_api(handler) as api:
        board = await api.get_board(PROJECT_ID)

    assert seen["url"] == f"http://kanban.test/api/v1/projects/{PROJECT_ID}"
    assert seen["auth"] == "Bearer tok"
    assert [c.name for c in board.columns] == list(layout)


async def test_move_task_sends_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "message": "Task moved"})

    async with make_api(handler) as api:
        resp = await api.move_task(task_id("A"), column_id("Done"), 1)

    assert resp.success is True
    assert seen["method"] == "POST"
    assert seen["path"] == f"/api/v1/tasks/{task_id('A')}/move"
    assert seen["body"] == {"column_id": str(column_id("Done")), "position": 1}


async def test_error_envelope_becomes_api_error():
    def handler(request):
        return httpx.Response(
            400,
            json={"success": False, "error": "Bad Request", "message": "Position must be between 0 and 2"},
        )

    async with make_api(handler) as api:
        with pytest.raises(APIError) as exc:
            await api.move_task(task_id("A"), column_id("To Do"), 9)

    assert exc.value.status == 400
    assert exc.value.message == "Position must be between 0 and 2"
    assert not exc.value.is_transport_error


async def test_non_json_error_uses_body_text():
    async with make_api(lambda r: httpx.Response(502, text="upstream gone")) as api:
        with pytest.raises(APIError) as exc:
            await api.delete_task(task_id("A"))
    assert exc.value.status == 502
    assert exc.value.message == "upstream gone"


async def test_transport_error_has_status_zero():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_api(handler) as api:
        with pytest.raises(APIError) as exc:
            await api.reorder_column(column_id("Done"), 0)
    assert exc.value.is_transport_error
    assert exc.value.message.startswith("Network error")


async def test_timeout_has_status_zero():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with make_api(handler) as api:
        with pytest.raises(APIError) as exc:
            await api.get_board(PROJECT_ID)
    assert exc.value.status == 0
    assert exc.value.message == "Request timed out"


def test_from_config(monkeypatch):
    monkeypatch.setenv("KANBAN_TOKEN_API_TEST", "secret")
    cfg = ServerConfig(url="https://k.example.com", token_env="KANBAN_TOKEN_API_TEST", request_timeout_seconds=1.5)
    api = BoardAPI.from_config(cfg)
    assert api._token == "secret"
    assert api._request_timeout == 1.5


async def test_unparseable_success_becomes_api_error():
    async with make_api(lambda r: httpx.Response(200, text="OK")) as api:
        with pytest.raises(APIError) as exc:
            await api.move_task(task_id("A"), column_id("Done"), 0)
    assert exc.value.status == 200
    assert "APIResponse" in exc.value.message


async def test_unexpected_shape_becomes_api_error():
    async with make_api(lambda r: httpx.Response(200, json={"columns": "nope"})) as api:
        with pytest.raises(APIError) as exc:
            await api.get_board(PROJECT_ID)
    assert exc.value.status == 200
    assert not exc.value.is_transport_error
