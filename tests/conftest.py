"""Pytest configuration and shared fixtures.

This module provides reusable fixtures for testing across the entire test suite.
Fixtures are organized by category to make them easy to discover and extend.

Organization:
    - Cache Fixtures: in-memory Redis stand-in and the cache wrapping it
    - Task Fixtures: in-memory Taskiq broker and result helpers
    - Settings Fixtures: explicit settings for the composition root
    - Application Fixtures: FastAPI app, container and HTTP client
    - Utility Fixtures: helpers and common test data

When adding new features:
    1. Add fixtures to the appropriate section below
    2. Use @pytest.fixture with clear docstrings
    3. Use scopes appropriately (function, class, module, session)
    4. Make fixtures composable (fixtures can depend on other fixtures)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
import fnmatch
import os
from typing import Any

from httpx import ASGITransport, AsyncClient
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

# Ensure tests run without external infrastructure
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("CRON_ENABLED", "true")
os.environ.setdefault("SSE_EVENT_BUS_BACKEND", "local")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("TASK_EAGER_INITIALIZE", "false")


# ============================================================================
# Cache Fixtures
# ============================================================================


class FakeRedis:
    """In-memory subset of ``redis.asyncio.Redis`` used by the service.

    Values are stored decoded (as with ``decode_responses=True``). Set
    ``fail_with`` to make every command raise, and call ``expire_now`` to
    simulate a key reaching its TTL.
    """

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.ttls: dict[str, int] = {}
        self.published: list[tuple[str, str]] = []
        self.subscribers: dict[str, int] = {}
        self.fail_with: Exception | None = None
        self.executed_pipelines: list[tuple[bool, list[str]]] = []
        self.closed = False

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _exists(self, key: str) -> bool:
        return key in self.hashes or key in self.sets

    # -- connection -------------------------------------------------------

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        self.closed = True

    # -- hashes -----------------------------------------------------------

    async def hset(
        self,
        key: str,
        field: str | None = None,
        value: Any = None,
        mapping: dict[str, Any] | None = None,
    ) -> int:
        self._check()
        target = self.hashes.setdefault(key, {})
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        added = sum(1 for name in items if name not in target)
        target.update({name: str(val) for name, val in items.items()})
        return added

    async def hget(self, key: str, field: str) -> str | None:
        self._check()
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key: str) -> dict[str, str]:
        self._check()
        return dict(self.hashes.get(key, {}))

    # -- sets -------------------------------------------------------------

    async def sadd(self, key: str, *members: str) -> int:
        self._check()
        target = self.sets.setdefault(key, set())
        added = sum(1 for member in members if member not in target)
        target.update(members)
        return added

    async def srem(self, key: str, *members: str) -> int:
        self._check()
        target = self.sets.get(key, set())
        removed = sum(1 for member in members if member in target)
        target.difference_update(members)
        if not target:
            self.sets.pop(key, None)
        return removed

    async def smembers(self, key: str) -> set[str]:
        self._check()
        return set(self.sets.get(key, set()))

    async def scard(self, key: str) -> int:
        self._check()
        return len(self.sets.get(key, set()))

    # -- keys -------------------------------------------------------------

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        if not self._exists(key):
            return False
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        self._check()
        if not self._exists(key):
            return -2
        return self.ttls.get(key, -1)

    async def delete(self, *keys: str) -> int:
        self._check()
        deleted = 0
        for key in keys:
            if self.hashes.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    def keys_matching(self, pattern: str) -> list[str]:
        return sorted(key for key in [*self.hashes, *self.sets] if fnmatch.fnmatch(key, pattern))

    def expire_now(self, key: str) -> None:
        """Drop ``key`` as if its TTL ran out."""
        self.hashes.pop(key, None)
        self.sets.pop(key, None)
        self.ttls.pop(key, None)

    # -- pub/sub ----------------------------------------------------------

    async def publish(self, channel: str, message: str) -> int:
        self._check()
        self.published.append((channel, message))
        return self.subscribers.get(channel, 0)

    # -- pipelines --------------------------------------------------------

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self, transaction=transaction)


class FakePipeline:
    """Buffers commands and runs them against ``FakeRedis`` on ``execute``.

    After ``watch()`` and until ``multi()`` commands run immediately, as with
    redis-py's optimistic locking pattern.
    """

    def __init__(self, redis: FakeRedis, *, transaction: bool) -> None:
        self._redis = redis
        self.transaction = transaction
        self.watched: list[str] = []
        self._immediate = False
        self._commands: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.reset()

    async def watch(self, *keys: str) -> bool:
        self._redis._check()
        self.watched.extend(keys)
        self._immediate = True
        return True

    def multi(self) -> None:
        self._immediate = False

    async def reset(self) -> None:
        self._immediate = False
        self._commands.clear()

    def __getattr__(self, name: str) -> Any:
        command = getattr(self._redis, name)
        if not callable(command):
            raise AttributeError(name)
        if self._immediate:
            return command

        def queue(*args: Any, **kwargs: Any) -> FakePipeline:
            self._commands.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> list[Any]:
        self._redis._check()
        self._redis.executed_pipelines.append((self.transaction, [name for name, _, _ in self._commands]))
        results = [await getattr(self._redis, name)(*args, **kwargs) for name, args, kwargs in self._commands]
        self._commands.clear()
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Provide an in-memory Redis for registry and event bus tests.

    Example:
        async def test_track(fake_redis, cache):
            await JobRegistry(cache).track("u1", "j1", "csv_import")
            assert "job:j1:data" in fake_redis.hashes
    """
    return FakeRedis()


@pytest.fixture
def redis_down() -> Exception:
    """Error raised by ``FakeRedis`` when a test takes Redis down."""
    return RedisConnectionError("Connection refused")


@pytest.fixture
def cache(fake_redis: FakeRedis, settings):
    """Provide a ``RedisCache`` already connected to ``fake_redis``."""
    from property_service.infra.cache import RedisCache

    return RedisCache(settings.redis, client=fake_redis)  # type: ignore[arg-type]


# ============================================================================
# Task Fixtures
# ============================================================================


@pytest.fixture
async def broker():
    """Provide a started in-memory Taskiq broker without middleware."""
    from property_service.infra.tasks import create_broker

    broker = create_broker()
    await broker.startup()
    yield broker
    await broker.shutdown()


@pytest.fixture
async def started_broker(container):
    """Start the container's broker for tests that run tasks through it."""
    await container.broker.startup()
    yield container.broker
    await container.broker.shutdown()


@pytest.fixture
def wait_for_result():
    """Wait until a kicked task has stored its result, then return it.

    Example:
        job_id = await queue.enqueue("csv.import", {"file_id": "f1"})
        result = await wait_for_result(broker, job_id)
        assert not result.is_err
    """

    async def wait(broker, task_id: str, timeout: float = 2.0):
        async def ready() -> None:
            while not await broker.result_backend.is_result_ready(task_id):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(ready(), timeout=timeout)
        return await broker.result_backend.get_result(task_id)

    return wait


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """Provide unified settings suited to tests.

    Cron is enabled with no providers; SSE sessions use a short keep-alive.
    """
    from property_service.core.settings import (
        CronSettings,
        LoggingSettings,
        Settings,
        SSESettings,
        TaskSettings,
    )

    return Settings(
        tasks=TaskSettings(job_ttl_seconds=7200, eager_initialize=False),
        cron=CronSettings(enabled=True, default_timezone="UTC"),
        sse=SSESettings(keepalive_interval=0.05, max_sessions_per_user=2, event_bus_backend="local"),
        logging=LoggingSettings(json_logs=False, file_enabled=False),
    )


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def container(settings, fake_redis: FakeRedis):
    """Provide an application container wired to the in-memory Redis."""
    from property_service.app.container import build_container

    return build_container(settings, redis_client=fake_redis)  # type: ignore[arg-type]


@pytest.fixture
async def app(container):
    """Create FastAPI application for testing.

    The lifespan is not run by ``ASGITransport``; tests that need the
    scheduler or registered cron jobs start them explicitly.

    Returns:
        FastAPI application instance.
    """
    from property_service.app.main import create_app

    return create_app(container=container)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for testing.

    This fixture provides an HTTPX AsyncClient for making requests to the FastAPI app.
    The client is automatically closed after the test completes.

    Example:
        async def test_list_jobs(client, user_headers):
            response = await client.get("/api/v1/jobs", headers=user_headers)
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ============================================================================
# Utility Fixtures
# ============================================================================


@pytest.fixture
def user_headers() -> dict[str, str]:
    """Identity headers the gateway forwards for an authenticated user."""
    return {"X-User-Id": "user-123", "X-Tenant-Id": "tenant-1"}


@pytest.fixture
def utc_now() -> datetime:
    """Provide current UTC datetime for consistent testing."""
    return datetime.now(UTC)
