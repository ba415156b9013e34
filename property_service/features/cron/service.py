"""Cron orchestrator: turns provider job descriptors into repeating queue jobs.

Production: enable on exactly one process (``CRON_ENABLED=true``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]

from property_service.core.exceptions import CronJobConfigurationError, CronJobNotFoundError
from property_service.features.cron.models import (
    DEFAULT_CRON_TIMEOUT_SECONDS,
    DEFAULT_CRON_TIMEZONE,
    CronJob,
    ScheduledRun,
    cron_job_id,
)
from property_service.infra.tasks.queues import EnqueueOptions, RepeatOptions

if TYPE_CHECKING:
    from collections.abc import Sequence

    from property_service.features.cron.models import CronHandler, CronProvider
    from property_service.infra.tasks.queues import QueueBackend

logger = logging.getLogger(__name__)

CRON_EXECUTE_TASK = "cron.execute"


class CronOrchestrator:
    """Central table of recurring jobs.

    Jobs are collected once from every ``CronProvider`` by ``register_all()``;
    enabled jobs are scheduled on the queue under the id ``cron:<name>`` so a
    restart replaces the previous registration instead of adding a second one.

    Example:
        orchestrator = CronOrchestrator(cron_queue, [lease_provider])
        await orchestrator.register_all()
        await orchestrator.disable("lease-expiry-check")
    """

    def __init__(
        self,
        queue: QueueBackend,
        providers: Sequence[CronProvider],
        *,
        default_timezone: str = DEFAULT_CRON_TIMEZONE,
        default_timeout: float = DEFAULT_CRON_TIMEOUT_SECONDS,
    ) -> None:
        self._queue = queue
        self._providers = list(providers)
        self._default_timezone = default_timezone
        self._default_timeout = default_timeout
        self._jobs: dict[str, CronJob] = {}

    @property
    def default_timezone(self) -> str:
        return self._default_timezone

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    async def register_all(self) -> None:
        """Collect and schedule jobs from every provider.

        Failures are isolated: a provider that fails to list its jobs is
        skipped, and a job that is invalid, duplicated or cannot be scheduled
        is logged and skipped while the remaining jobs are still registered.
        """
        logger.info("Registering cron jobs", extra={"provider_count": len(self._providers)})

        for provider in self._providers:
            provider_name = type(provider).__name__
            try:
                jobs = list(provider.provides_cron_jobs())
            except Exception as e:
                logger.exception(
                    "Error collecting cron jobs from provider",
                    extra={"provider": provider_name, "error": str(e)},
                )
                continue

            registered = 0
            for job in jobs:
                try:
                    await self.register(job)
                except Exception as e:
                    logger.exception(
                        "Error registering cron job",
                        extra={"provider": provider_name, "job_name": getattr(job, "name", None), "error": str(e)},
                    )
                    continue
                registered += 1

            logger.info(
                "Registered cron jobs from provider",
                extra={"provider": provider_name, "job_count": registered, "skipped": len(jobs) - registered},
            )

        logger.info("Total cron jobs registered", extra={"job_count": len(self._jobs)})

    async def register(self, job: CronJob) -> None:
        """Validate and store one job, scheduling it when enabled.

        Raises:
            CronJobConfigurationError: If the job is invalid or its name is taken.
        """
        self._validate(job)
        if job.name in self._jobs:
            msg = f"Duplicate cron job name: {job.name}"
            raise CronJobConfigurationError(msg, name=job.name)

        if job.enabled:
            await self.schedule(job)
        self._jobs[job.name] = job
        if job.enabled:
            logger.info(
                "Scheduled cron job",
                extra={"job_name": job.name, "schedule": job.schedule, "timezone": self._timezone_of(job)},
            )
        else:
            logger.info("Registered cron job (disabled)", extra={"job_name": job.name})

    async def schedule(self, job: CronJob) -> str:
        return await self._queue.enqueue(
            CRON_EXECUTE_TASK,
            {"job_name": job.name, "service": job.service},
            EnqueueOptions(
                job_id=cron_job_id(job.name),
                timeout=job.timeout or self._default_timeout,
                repeat=RepeatOptions(cron=job.schedule, tz=self._timezone_of(job)),
            ),
        )

    async def enable(self, name: str) -> CronJob:
        """Schedule a disabled job again.

        Raises:
            CronJobNotFoundError: If no job is registered under ``name``.
        """
        job = self.get(name)
        if job.enabled:
            logger.warning("Cron job already enabled", extra={"job_name": name})
            return job

        await self.schedule(job)
        job.enabled = True
        logger.info("Enabled cron job", extra={"job_name": name})
        return job

    async def disable(self, name: str) -> CronJob:
        """Remove a job's repeating registration, keeping it in the table.

        Raises:
            CronJobNotFoundError: If no job is registered under ``name``.
        """
        job = self.get(name)
        if not job.enabled:
            logger.warning("Cron job already disabled", extra={"job_name": name})
            return job

        await self._queue.remove_repeatable(cron_job_id(name), job.schedule)
        job.enabled = False
        logger.info("Disabled cron job", extra={"job_name": name})
        return job

    async def next_executions(self) -> list[ScheduledRun]:
        """Next fire time of every enabled job, earliest first."""
        repeatable = {entry.id: entry for entry in await self._queue.list_repeatable()}

        runs = []
        for name, job in self._jobs.items():
            if not job.enabled:
                continue
            entry = repeatable.get(cron_job_id(name))
            if entry is not None and entry.next_run is not None:
                runs.append(ScheduledRun(job=name, next_run=entry.next_run))

        return sorted(runs, key=lambda run: run.next_run)

    def get(self, name: str) -> CronJob:
        try:
            return self._jobs[name]
        except KeyError:
            raise CronJobNotFoundError(name) from None

    def get_handler(self, name: str) -> CronHandler:
        handler = self.get(name).handler
        if handler is None:
            msg = f"Cron job has no handler: {name}"
            raise CronJobConfigurationError(msg, name=name)
        return handler

    def jobs(self) -> list[CronJob]:
        return list(self._jobs.values())

    def _timezone_of(self, job: CronJob) -> str:
        return job.timezone or self._default_timezone

    def _validate(self, job: CronJob) -> None:
        if not job.name or not job.schedule or job.handler is None:
            msg = "Invalid cron job: missing required fields (name, schedule, handler)"
            raise CronJobConfigurationError(msg, name=job.name or None)

        try:
            CronTrigger.from_crontab(job.schedule, timezone=self._timezone_of(job))
        except (ValueError, KeyError) as e:
            msg = f"Invalid cron job schedule or timezone: {job.schedule!r} ({e})"
            raise CronJobConfigurationError(msg, name=job.name) from e
