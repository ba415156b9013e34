"""Pydantic schemas for job tracking endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from property_service.infra.tasks.tracking import JobType, TrackedJob


class TrackedJobResponse(BaseModel):
    """A background job the current user is following."""

    job_id: str = Field(..., description="Job identifier")
    job_type: JobType = Field(
        ...,
        description="Kind of background job, always in its underscore form (e.g. media_upload)",
        examples=["media_upload"],
    )
    created_at: datetime = Field(..., description="When the job was tracked")
    metadata: dict[str, Any] | None = Field(None, description="Job-specific progress details")

    @classmethod
    def from_job(cls, job: TrackedJob) -> TrackedJobResponse:
        return cls(job_id=job.job_id, job_type=job.job_type, created_at=job.created_at, metadata=job.metadata)


class TrackedJobListResponse(BaseModel):
    jobs: list[TrackedJobResponse] = Field(..., description="Live tracked jobs, oldest first")
    count: int = Field(..., description="Number of jobs returned")


class JobCountResponse(BaseModel):
    count: int = Field(..., description="Job ids in the user's set, expired ones included")


class RemoveJobsRequest(BaseModel):
    """Request to stop following finished jobs."""

    job_ids: list[str] = Field(..., max_length=500, description="Jobs to remove")


class RemoveJobsResponse(BaseModel):
    removed_count: int = Field(..., description="Jobs that were still tracked and are now removed")


class UpdateMetadataRequest(BaseModel):
    metadata: dict[str, Any] = Field(..., description="Fields merged into the job's metadata")


class UpdateMetadataResponse(BaseModel):
    job_id: str = Field(..., description="Job identifier")
    metadata: dict[str, Any] = Field(..., description="Metadata after the merge")
