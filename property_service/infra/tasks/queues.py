"""Named task queues on top of the Taskiq broker and the shared scheduler.

A ``TaskQueue`` is the queue backend used by job submission and by the cron
orchestrator:

- ``enqueue`` without ``repeat`` kicks the named Taskiq task right away.
- ``enqueue`` with ``repeat`` registers a ``CronTrigger`` job under the given
  id, replacing any previous registration with the same id. Each time the
  trigger fires, the task is kicked on the broker.

Building a queue has no side effects on the broker or the scheduler, so a
handle can be dropped and built again at any time. Repeating registrations
carry the queue name and live on the scheduler, not on the handle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError  # type: ignore[import-untyped]
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from apscheduler.job import Job  # type: ignore[import-untyped]
    from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
    from taskiq import AsyncBroker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepeatOptions:
    """Crontab expression and timezone of a repeating job."""

    cron: str
    tz: str = "UTC"


@dataclass(frozen=True)
class EnqueueOptions:
    job_id: str | None = None
    timeout: float | None = None
    labels: dict[str, str] = field(default_factory=dict)
    repeat: RepeatOptions | None = None


@dataclass(frozen=True)
class RepeatableJob:
    """A repeating registration as reported by the queue backend."""

    id: str
    name: str
    cron: str
    tz: str
    next_run: datetime | None


class QueueBackend(Protocol):
    """What callers need from a queue: enqueue and manage repeating jobs."""

    name: str

    async def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        options: EnqueueOptions | None = None,
    ) -> str: ...

    async def list_repeatable(self) -> list[RepeatableJob]: ...

    async def remove_repeatable(self, job_id: str, cron: str) -> bool: ...


def next_fire_time(job: Job) -> datetime | None:
    """Next run of an APScheduler job, computed from its trigger while still pending."""
    next_run = getattr(job, "next_run_time", None)
    if next_run is None and not hasattr(job, "next_run_time"):
        next_run = job.trigger.get_next_fire_time(None, datetime.now(UTC))
    return next_run


class TaskQueue:
    """A named queue that kicks Taskiq tasks, now or on a cron schedule.

    Example:
        queue = TaskQueue("upload", broker, scheduler)
        job_id = await queue.enqueue("csv.import", {"file_id": "f1"})
    """

    def __init__(
        self,
        name: str,
        broker: AsyncBroker,
        scheduler: AsyncIOScheduler,
        *,
        default_timeout: float = 300,
    ) -> None:
        self.name = name
        self._broker = broker
        self._scheduler = scheduler
        self._default_timeout = default_timeout

    async def enqueue(
        self,
        job_name: str,
        payload: dict[str, Any],
        options: EnqueueOptions | None = None,
    ) -> str:
        """Run ``job_name`` with ``payload`` as keyword arguments.

        Returns:
            The job id (generated when ``options.job_id`` is not given).

        Raises:
            KeyError: If no task is registered under ``job_name``.
            ValueError: If the repeat crontab expression is invalid.
            TaskiqError: If the broker rejects the message.
        """
        options = options or EnqueueOptions()
        job_id = options.job_id or uuid4().hex
        timeout = options.timeout or self._default_timeout

        if options.repeat is None:
            await self._kick(job_name, job_id, dict(payload), dict(options.labels), timeout)
            logger.debug(
                "Job enqueued",
                extra={"queue": self.name, "job_id": job_id, "task_name": job_name},
            )
            return job_id

        repeat = options.repeat
        trigger = CronTrigger.from_crontab(repeat.cron, timezone=repeat.tz)
        if not self._scheduler.running:
            # Pending jobs are only deduplicated once the scheduler starts
            self._remove_job(job_id)
        self._scheduler.add_job(
            self._fire,
            trigger=trigger,
            kwargs={
                "queue": self.name,
                "task_name": job_name,
                "schedule_id": job_id,
                "payload": dict(payload),
                "labels": dict(options.labels),
                "timeout": timeout,
                "repeat": repeat,
            },
            id=job_id,
            name=job_name,
            replace_existing=True,
        )
        logger.info(
            "Repeating job registered",
            extra={"queue": self.name, "job_id": job_id, "cron": repeat.cron, "tz": repeat.tz},
        )
        return job_id

    async def list_repeatable(self) -> list[RepeatableJob]:
        jobs = []
        for job in self._owned_jobs():
            repeat: RepeatOptions = job.kwargs["repeat"]
            jobs.append(
                RepeatableJob(
                    id=job.id,
                    name=job.name,
                    cron=repeat.cron,
                    tz=repeat.tz,
                    next_run=next_fire_time(job),
                )
            )
        return jobs

    async def remove_repeatable(self, job_id: str, cron: str) -> bool:
        """Remove the repeating registration ``(job_id, cron)``.

        Returns:
            True if a registration was removed.
        """
        job = self._scheduler.get_job(job_id)
        if job is None or not self._owns(job) or job.kwargs["repeat"].cron != cron:
            return False

        removed = self._remove_job(job_id)
        logger.info(
            "Repeating job removed",
            extra={"queue": self.name, "job_id": job_id, "cron": cron, "removed": removed},
        )
        return removed

    async def close(self) -> None:
        """Drop this queue's repeating registrations from the scheduler."""
        for job in self._owned_jobs():
            self._remove_job(job.id)
        logger.debug("Queue closed", extra={"queue": self.name})

    def _owns(self, job: Job) -> bool:
        return job.kwargs.get("queue") == self.name and "repeat" in job.kwargs

    def _owned_jobs(self) -> list[Job]:
        return [job for job in self._scheduler.get_jobs() if self._owns(job)]

    def _remove_job(self, job_id: str) -> bool:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        return True

    async def _kick(
        self,
        task_name: str,
        task_id: str,
        payload: dict[str, Any],
        labels: dict[str, Any],
        timeout: float,
    ) -> None:
        task = self._broker.find_task(task_name)
        if task is None:
            msg = f"No task registered: {task_name}"
            raise KeyError(msg)

        await (
            task.kicker()
            .with_task_id(task_id)
            .with_labels(**labels, queue=self.name, timeout=timeout)
            .kiq(**payload)
        )

    async def _fire(
        self,
        *,
        queue: str,
        task_name: str,
        schedule_id: str,
        payload: dict[str, Any],
        labels: dict[str, str],
        timeout: float,
        repeat: RepeatOptions,
    ) -> str:
        """Kick one run of a repeating job; each run gets its own task id."""
        task_id = uuid4().hex
        try:
            await self._kick(task_name, task_id, payload, {**labels, "schedule_id": schedule_id}, timeout)
        except Exception as e:
            logger.exception(
                "Failed to kick repeating job",
                extra={"queue": queue, "job_id": schedule_id, "task_name": task_name, "error": str(e)},
            )
            raise
        logger.debug(
            "Repeating job fired",
            extra={"queue": queue, "job_id": schedule_id, "task_id": task_id, "cron": repeat.cron},
        )
        return task_id
