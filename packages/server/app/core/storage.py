"""
Object storage for task attachments.

Talks to an S3/B2-compatible bucket over plain HTTP with basic auth:
``PUT``/``GET``/``DELETE {endpoint}/{bucket}/{key}``.
"""

from __future__ import annotations

import httpx
import structlog
from fastapi import HTTPException

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()


class ObjectStore:
    def __init__(
        self,
        endpoint: str,
        bucket: str,
        key_id: str = "",
        app_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = f"{endpoint.rstrip('/')}/{bucket}"
        auth = httpx.BasicAuth(key_id, app_key) if key_id else None
        self._client = httpx.AsyncClient(
            auth=auth,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def url_for(self, key: str) -> str:
        return f"{self._base_url}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Upload an object. Raises ``HTTPException(502)`` when the bucket refuses it."""
        try:
            resp = await self._client.put(
                self.url_for(key),
                content=data,
                headers={"Content-Type": content_type},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            log.error("storage.upload_failed", key=key, error=str(exc))
            raise HTTPException(status_code=502, detail="Failed to upload file")
        log.info("storage.uploaded", key=key, size=len(data))

    async def get(self, key: str) -> httpx.Response:
        try:
            resp = await self._client.get(self.url_for(key))
        except httpx.HTTPError as exc:
            log.error("storage.download_failed", key=key, error=str(exc))
            raise HTTPException(status_code=502, detail="Failed to fetch file")
        if resp.status_code == 404:
            raise HTTPException(status_code=404, detail="File not found in storage")
        if resp.status_code >= 400:
            log.error("storage.download_failed", key=key, status=resp.status_code)
            raise HTTPException(status_code=502, detail="Failed to fetch file")
        return resp

    async def delete(self, key: str) -> None:
        """Best-effort delete; a missing object is not an error."""
        try:
            resp = await self._client.delete(self.url_for(key))
            if resp.status_code not in (200, 202, 204, 404):
                log.warning("storage.delete_failed", key=key, status=resp.status_code)
        except httpx.HTTPError as exc:
            log.warning("storage.delete_failed", key=key, error=str(exc))

    async def aclose(self) -> None:
        await self._client.aclose()


_store: ObjectStore | None = None


def get_object_store() -> ObjectStore:
    """FastAPI dependency returning the process-wide object store."""
    global _store
    if _store is None:
        _store = ObjectStore(
            endpoint=settings.storage_endpoint,
            bucket=settings.storage_bucket,
            key_id=settings.storage_key_id,
            app_key=settings.storage_app_key,
            timeout=settings.storage_timeout_seconds,
        )
    return _store


async def close_object_store() -> None:
    global _store
    if _store is not None:
        await _store.aclose()
        _store = None
