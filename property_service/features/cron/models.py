"""Cron job descriptors and the provider interface."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

CronHandler = Callable[[], Awaitable[None]]

DEFAULT_CRON_TIMEZONE = "UTC"
DEFAULT_CRON_TIMEOUT_SECONDS = 300


@dataclass
class CronJob:
    """A named recurring job.

    ``enabled`` is flipped by the orchestrator; every other field is fixed
    once the job is registered.
    """

    name: str
    schedule: str
    handler: CronHandler | None
    enabled: bool = True
    timezone: str | None = None
    timeout: float | None = None
    service: str | None = None
    description: str | None = None

    @property
    def job_id(self) -> str:
        return cron_job_id(self.name)


@dataclass(frozen=True)
class ScheduledRun:
    job: str
    next_run: datetime


class CronProvider(Protocol):
    """A component that owns recurring jobs."""

    def provides_cron_jobs(self) -> list[CronJob]: ...


def cron_job_id(name: str) -> str:
    """Queue id of a cron job; one repeating registration per name."""
    return f"cron:{name}"
