"""Pydantic schemas for cron administration endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from property_service.features.cron.models import CronJob


class CronJobResponse(BaseModel):
    """A registered cron job."""

    name: str = Field(..., description="Unique job name")
    schedule: str = Field(..., description="Crontab expression")
    timezone: str = Field(..., description="Timezone the schedule is evaluated in")
    enabled: bool = Field(..., description="Whether the job is currently scheduled")
    timeout: float = Field(..., description="Execution timeout in seconds")
    service: str | None = Field(None, description="Component that provides the job")
    description: str | None = Field(None, description="What the job does")

    @classmethod
    def from_job(cls, job: CronJob, *, default_timezone: str, default_timeout: float) -> CronJobResponse:
        return cls(
            name=job.name,
            schedule=job.schedule,
            timezone=job.timezone or default_timezone,
            enabled=job.enabled,
            timeout=job.timeout or default_timeout,
            service=job.service,
            description=job.description,
        )


class CronJobListResponse(BaseModel):
    jobs: list[CronJobResponse] = Field(..., description="Registered cron jobs")
    count: int = Field(..., description="Total number of registered jobs")


class ScheduledRunResponse(BaseModel):
    job: str = Field(..., description="Cron job name")
    next_run: datetime = Field(..., description="When the job will next run")


class NextExecutionsResponse(BaseModel):
    """Upcoming runs of enabled jobs, earliest first."""

    executions: list[ScheduledRunResponse] = Field(..., description="Upcoming runs")
