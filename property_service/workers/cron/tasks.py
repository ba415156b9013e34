"""Cron task definitions.

This module provides the ``cron.execute`` task: the queue fires it on each
cron schedule and it runs the matching handler from the cron orchestrator.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from property_service.features.cron.service import CRON_EXECUTE_TASK
from property_service.infra.metrics.prometheus import (
    cron_job_duration_seconds,
    cron_job_runs_total,
)

if TYPE_CHECKING:
    from taskiq import AsyncBroker

    from property_service.features.cron.service import CronOrchestrator

logger = logging.getLogger(__name__)


class CronWorker:
    """Worker that executes fired cron jobs."""

    name = "cron"

    def __init__(self, orchestrator: CronOrchestrator) -> None:
        self._orchestrator = orchestrator

    def register(self, broker: AsyncBroker) -> None:
        broker.register_task(self.execute, task_name=CRON_EXECUTE_TASK)

    async def execute(self, job_name: str, service: str | None = None) -> dict[str, Any]:
        """Run one cron job.

        Scheduled: by the job's own crontab expression (via the cron queue).

        Returns:
            Dictionary with the job name and its duration.

        Raises:
            CronJobNotFoundError: If the job is no longer registered.
            Exception: Whatever the handler raised, so the run is marked failed.
        """
        handler = self._orchestrator.get_handler(job_name)

        logger.info("Executing cron job", extra={"job_name": job_name, "service": service})
        start = time.perf_counter()
        try:
            await handler()
        except Exception as e:
            duration = time.perf_counter() - start
            cron_job_duration_seconds.labels(job=job_name).observe(duration)
            cron_job_runs_total.labels(job=job_name, status="failure").inc()
            logger.exception(
                "Cron job failed",
                extra={"job_name": job_name, "service": service, "duration_seconds": duration, "error": str(e)},
            )
            raise

        duration = time.perf_counter() - start
        cron_job_duration_seconds.labels(job=job_name).observe(duration)
        cron_job_runs_total.labels(job=job_name, status="success").inc()
        logger.info(
            "Cron job completed",
            extra={"job_name": job_name, "service": service, "duration_seconds": duration},
        )
        return {"job_name": job_name, "duration_seconds": duration}
