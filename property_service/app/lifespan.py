"""Application lifespan management.

Startup Order:
1. Core (logging)
2. Cache (Redis) - degraded mode unless REDIS_STARTUP_REQUIRE_CACHE is set
3. Event bus and event bridge
4. Task broker (Taskiq), scheduler (APScheduler) and queues
5. Cron registration - only where CRON_ENABLED is set

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from property_service.infra.logging.config import setup_logging
from property_service.infra.tasks import start_scheduler, start_taskiq, stop_scheduler, stop_taskiq

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from property_service.app.container import AppContainer

logger = logging.getLogger(__name__)


# =============================================================================
# Startup functions - organized by service
# =============================================================================


async def _startup_core(container: AppContainer) -> None:
    """Configure logging."""
    app = container.settings.app
    setup_logging(log_settings=container.settings.logging)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )


async def _startup_cache(container: AppContainer) -> None:
    """Connect to Redis, continuing in degraded mode if it is unavailable."""
    redis = container.settings.redis
    cache = container.cache

    if cache.is_connected or not redis.is_configured:
        return

    try:
        await cache.connect()
        logger.info("Redis cache initialized")
    except (RedisError, OSError) as e:
        if redis.startup_require_cache:
            logger.exception(
                "Redis cache required but unavailable, failing startup",
                extra={"startup_require_cache": True},
            )
            raise
        logger.warning(
            "Redis cache unavailable, continuing in degraded mode",
            extra={"error": str(e), "startup_require_cache": False},
        )


async def _startup_realtime(container: AppContainer) -> None:
    """Start the event bus and route its events to push sessions."""
    try:
        await container.bus.start()
    except (RedisError, RuntimeError, OSError) as e:
        logger.warning(
            "Event bus unavailable, job events will not reach other processes",
            extra={"backend": container.settings.sse.event_bus_backend, "error": str(e)},
        )
    container.bridge.start()


async def _startup_tasks(container: AppContainer) -> None:
    """Start the broker and the scheduler, then warm up queues when configured."""
    await start_taskiq(container.broker)
    await start_scheduler(container.scheduler)

    if container.settings.tasks.eager_initialize:
        container.queues.initialize_all()


async def _startup_cron(container: AppContainer) -> None:
    """Register cron jobs (this process only runs cron when CRON_ENABLED is set)."""
    if container.cron is None:
        return

    container.queues.get_worker("cron")
    await container.cron.register_all()
    logger.info("Cron jobs registered", extra={"job_count": len(container.cron.jobs())})


# =============================================================================
# Shutdown functions
# =============================================================================


async def _shutdown_tasks(container: AppContainer) -> None:
    await container.queues.shutdown()
    await stop_scheduler(container.scheduler)
    await stop_taskiq(container.broker)


async def _shutdown_realtime(container: AppContainer) -> None:
    container.bridge.stop()
    await container.sessions.cleanup()
    try:
        await container.bus.stop()
    except (RedisError, OSError) as e:
        logger.warning("Error stopping event bus", extra={"error": str(e)})


async def _shutdown_cache(container: AppContainer) -> None:
    if container.cache.is_connected:
        await container.cache.disconnect()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    The container is built by ``create_app`` and stored on ``app.state``.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    container: AppContainer = app.state.container

    # =========================================================================
    # STARTUP PHASE - Initialize services in dependency order
    # =========================================================================

    await _startup_core(container)
    await _startup_cache(container)
    await _startup_realtime(container)
    await _startup_tasks(container)
    await _startup_cron(container)

    logger.info(
        "Application startup complete",
        extra={
            "service": container.settings.app.service_name,
            "cache_connected": container.cache.is_connected,
            "cron_enabled": container.cron is not None,
            "event_bus": container.settings.sse.event_bus_backend,
        },
    )

    yield

    # =========================================================================
    # SHUTDOWN PHASE - Reverse order
    # =========================================================================

    logger.info("Application shutting down")
    await _shutdown_tasks(container)
    await _shutdown_realtime(container)
    await _shutdown_cache(container)
    logger.info("Application shutdown complete")
