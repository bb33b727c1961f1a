"""
HTTP client for the board endpoints.

Every failure surfaces as ``APIError``: non-2xx responses carry the HTTP status
and the server's error message, transport failures and timeouts carry status 0.
"""

from __future__ import annotations

import uuid
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from kanban_shared.schemas.columns import ColumnOrder
from kanban_shared.schemas.common import APIResponse, ErrorResponse
from kanban_shared.schemas.projects import BoardRead
from kanban_shared.schemas.tasks import TaskCreate, TaskRead

from .config import ServerConfig

log = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


class APIError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}" if status else message)
        self.status = status
        self.message = message

    @property
    def is_transport_error(self) -> bool:
        return self.status == 0


class BoardAPI:
    """Thin async wrapper over ``/api/v1`` for one authenticated user."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        verify_tls: bool = True,
        request_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: ServerConfig, **kwargs: Any) -> "BoardAPI":
        return cls(
            config.url,
            config.token,
            verify_tls=config.verify_tls,
            request_timeout=config.request_timeout_seconds,
            **kwargs,
        )

    async def open(self) -> None:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api/v1",
            headers=headers,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BoardAPI":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Requests ---

    async def _request(self, method: str, path: str, model: type[M], json: Any = None) -> M:
        assert self._client, "BoardAPI.open() must be called first"
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.TimeoutException:
            log.warning("api.timeout", method=method, path=path)
            raise APIError(0, "Request timed out")
        except httpx.HTTPError as exc:
            log.warning("api.transport_error", method=method, path=path, error=str(exc))
            raise APIError(0, f"Network error: {exc}")

        if resp.is_success:
            try:
                return model.model_validate(resp.json())
            except (ValueError, ValidationError) as exc:
                log.warning(
                    "api.invalid_response",
                    method=method,
                    path=path,
                    status=resp.status_code,
                    error=str(exc),
                )
                raise APIError(resp.status_code, f"Invalid {model.__name__} response from server")

        try:
            message = ErrorResponse.model_validate(resp.json()).message
        except (ValueError, ValidationError):
            message = resp.text or resp.reason_phrase
        log.info("api.error_response", method=method, path=path, status=resp.status_code, message=message)
        raise APIError(resp.status_code, message)

    async def get_board(self, project_id: uuid.UUID) -> BoardRead:
        return await self._request("GET", f"/projects/{project_id}", BoardRead)

    async def move_task(self, task_id: uuid.UUID, column_id: uuid.UUID, position: int) -> APIResponse:
        return await self._request(
            "POST",
            f"/tasks/{task_id}/move",
            APIResponse,
            json={"column_id": str(column_id), "position": position},
        )

    async def reorder_column(self, column_id: uuid.UUID, position: int) -> ColumnOrder:
        return await self._request(
            "PUT", f"/columns/{column_id}/reorder", ColumnOrder, json={"position": position}
        )

    async def create_task(self, task_in: TaskCreate) -> TaskRead:
        return await self._request("POST", "/tasks", TaskRead, json=task_in.model_dump(mode="json", exclude_none=True))

    async def delete_task(self, task_id: uuid.UUID) -> APIResponse:
        return await self._request("DELETE", f"/tasks/{task_id}", APIResponse)
