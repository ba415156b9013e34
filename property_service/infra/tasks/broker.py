"""Taskiq broker configuration for background task execution.

APScheduler decides WHEN work runs (cron triggers for repeating jobs) and
Taskiq decides HOW it runs: task lookup, argument casting, timeouts, the
middleware chain and result storage.

Tasks run in-process on an ``InMemoryBroker``. Workers register their task
functions on the broker built here, and queues kick them by name with
``queue`` and ``timeout`` labels attached.

Middleware order matters:
1. MetricsMiddleware - records duration and outcome of every run
2. JobEventsMiddleware - publishes job outcome events for tracked jobs
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from taskiq import InMemoryBroker

if TYPE_CHECKING:
    from collections.abc import Sequence

    from taskiq import TaskiqMiddleware

logger = logging.getLogger(__name__)


def create_broker(
    middlewares: Sequence[TaskiqMiddleware] = (),
    *,
    max_async_tasks: int = 30,
) -> InMemoryBroker:
    """Build the process-wide broker (not started)."""
    broker = InMemoryBroker(max_async_tasks=max_async_tasks)
    if middlewares:
        broker.add_middlewares(*middlewares)

    logger.info(
        "Taskiq broker configured",
        extra={
            "broker": type(broker).__name__,
            "max_async_tasks": max_async_tasks,
            "middlewares": [type(middleware).__name__ for middleware in middlewares],
        },
    )
    return broker


async def start_taskiq(broker: InMemoryBroker) -> None:
    """Start the Taskiq broker.

    This should be called during application startup in the lifespan context.
    """
    logger.info("Starting Taskiq broker")

    try:
        await broker.startup()
        logger.info("Taskiq broker started successfully")
    except Exception as e:
        logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
        raise


async def stop_taskiq(broker: InMemoryBroker) -> None:
    """Stop the Taskiq broker.

    Errors are logged; shutdown continues with the remaining services.
    """
    logger.info("Stopping Taskiq broker")

    try:
        await broker.shutdown()
        logger.info("Taskiq broker stopped successfully")
    except Exception as e:
        logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})
