"""APScheduler setup shared by every task queue.

APScheduler decides WHEN work runs: recurring tasks fire on a ``CronTrigger``
and each firing kicks the task on the Taskiq broker, which runs it. One-off
tasks skip the scheduler and go straight to the broker.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)


def create_scheduler(
    *,
    timezone: str = "UTC",
    coalesce: bool = True,
    misfire_grace_seconds: int = 60,
) -> AsyncIOScheduler:
    """Build the process-wide scheduler (not started)."""
    return AsyncIOScheduler(
        timezone=timezone,
        job_defaults={
            "coalesce": coalesce,  # Combine multiple pending executions into one
            "max_instances": 1,  # Only one instance of each job at a time
            "misfire_grace_time": misfire_grace_seconds,
        },
    )


async def start_scheduler(scheduler: AsyncIOScheduler, *, paused: bool = False) -> None:
    """Start the scheduler on the running event loop."""
    if not scheduler.running:
        logger.info("Starting APScheduler")
        scheduler.start(paused=paused)
        logger.info("APScheduler started", extra={"job_count": len(scheduler.get_jobs())})
    else:
        logger.warning("APScheduler is already running")


async def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the scheduler without waiting for running jobs."""
    if scheduler.running:
        logger.info("Stopping APScheduler")
        scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")
    else:
        logger.debug("APScheduler is not running")

