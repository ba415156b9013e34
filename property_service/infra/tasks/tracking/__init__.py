"""Job tracking: which background jobs belong to which user."""

from property_service.infra.tasks.tracking.job_registry import (
    DEFAULT_JOB_TTL_SECONDS,
    JOB_NOT_FOUND,
    JOB_OWNED_BY_OTHER_USER,
    JobRegistry,
    job_data_key,
    user_jobs_key,
)
from property_service.infra.tasks.tracking.models import JobType, TrackedJob

__all__ = [
    "DEFAULT_JOB_TTL_SECONDS",
    "JOB_NOT_FOUND",
    "JOB_OWNED_BY_OTHER_USER",
    "JobRegistry",
    "JobType",
    "TrackedJob",
    "job_data_key",
    "user_jobs_key",
]
