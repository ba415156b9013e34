"""Redis client lifecycle with connection pooling.

The job registry and the Redis event bus share one ``RedisCache``; each reads
``cache.client`` at call time, so a cache that failed to connect at startup
surfaces as a ``RuntimeError`` on use instead of a crash at import.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from property_service.core.settings.redis import RedisSettings

logger = logging.getLogger(__name__)


class RedisCache:
    """Owns the Redis connection pool and client.

    Example:
        cache = RedisCache(get_redis_settings())
        await cache.connect()
        await cache.client.sadd("user:42:jobs", "job-1")
        await cache.disconnect()
    """

    def __init__(self, settings: RedisSettings, client: Redis | None = None) -> None:
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Establish the pooled connection and ping the server.

        Raises:
            RedisError: If unable to connect to Redis.
        """
        if self._client is not None:
            return

        logger.info(
            "Connecting to Redis",
            extra={
                "host": self._settings.host,
                "port": self._settings.port,
                "db": self._settings.db,
                "max_connections": self._settings.max_connections,
            },
        )

        try:
            self._pool = ConnectionPool.from_url(
                self._settings.url,
                **self._settings.connection_pool_kwargs(),
            )
            client = Redis(connection_pool=self._pool)
            await cast("Awaitable[bool]", client.ping())
        except (RedisError, OSError) as e:
            logger.exception("Failed to connect to Redis", extra={"error": str(e)})
            if self._pool is not None:
                await self._pool.aclose()
                self._pool = None
            raise

        self._client = client
        logger.info("Redis connection established successfully")

    async def disconnect(self) -> None:
        """Close the client and its pool."""
        logger.info("Disconnecting from Redis")

        if self._client is not None:
            await cast("Any", self._client).aclose()
            self._client = None

        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None

        logger.info("Redis connection closed")

    @property
    def client(self) -> Redis:
        """Get the Redis client instance.

        Raises:
            RuntimeError: If not connected.
        """
        if self._client is None:
            msg = "Redis client not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    async def health_check(self) -> bool:
        """Check if Redis is healthy and responsive."""
        try:
            await cast("Awaitable[bool]", self.client.ping())
            return True
        except (RedisError, RuntimeError, OSError) as e:
            logger.warning("Redis health check failed", extra={"error": str(e)})
            return False
