"""
Shared fixtures: an in-memory SQLite database per test, a dict-backed Redis
stand-in, an object store on ``httpx.MockTransport`` and helpers to register
users against the real app.
"""

from __future__ import annotations

import os

os.environ.setdefault("KANBAN_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("KANBAN_BCRYPT_ROUNDS", "4")
os.environ.setdefault("KANBAN_SECRET_KEY", "test-access-secret")
os.environ.setdefault("KANBAN_REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("KANBAN_LOG_LEVEL", "WARNING")

import uuid
from unittest.mock import AsyncMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import enable_sqlite_foreign_keys, get_session, init_db
from app.core.storage import ObjectStore, get_object_store
from app.main import app


class FakeRedis:
    """The subset of the redis client used by the revocation list."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def ping(self):
        return True


class FakeBucket:
    """In-memory bucket answering the object store's PUT/GET/DELETE calls."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_uploads = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        key = request.url.path.split("/", 2)[2]  # strip "/<bucket>/"
        if request.method == "PUT":
            if self.fail_uploads:
                return httpx.Response(503)
            self.objects[key] = (request.content, request.headers.get("content-type", ""))
            return httpx.Response(200)
        if request.method == "GET":
            if key not in self.objects:
                return httpx.Response(404)
            data, content_type = self.objects[key]
            return httpx.Response(200, content=data, headers={"Content-Type": content_type})
        if request.method == "DELETE":
            self.objects.pop(key, None)
            return httpx.Response(204)
        return httpx.Response(405)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()
    monkeypatch.setattr("app.core.auth.get_redis", AsyncMock(return_value=redis))
    return redis


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
async def object_store(bucket):
    store = ObjectStore(
        endpoint="http://storage.local",
        bucket="attachments-bucket",
        key_id="key-id",
        app_key="app-key",
        transport=httpx.MockTransport(bucket.handler),
    )
    yield store
    await store.aclose()


# ---------------------------------------------------------------------------
# App client
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(session_factory, fake_redis, object_store):
    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_object_store] = lambda: object_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user; returns ``(user_json, auth_headers)``."""

    async def _register(full_name: str = "Test User", email: str | None = None, password: str = "password123"):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        resp = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "full_name": full_name},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return _register


@pytest.fixture
async def alice(register):
    return await register("Alice Owner")


@pytest.fixture
async def bob(register):
    return await register("Bob Outsider")


@pytest.fixture
async def board(client, alice):
    """A fresh project owned by Alice with the four default columns."""
    _, headers = alice
    resp = await client.post("/api/v1/projects", json={"name": "Launch"}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
