"""Job tracking API router.

Endpoints:
- GET /jobs: Live background jobs of the current user
- GET /jobs/count: Size of the user's job set
- DELETE /jobs: Stop following finished jobs
- PATCH /jobs/{job_id}/metadata: Merge progress details into a job

The caller's identity comes from the ``X-User-Id`` and ``X-Tenant-Id``
headers set by the gateway. Registry failures are answered with 503.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from property_service.app.dependencies import JobRegistryDep, UserIdHeader
from property_service.core.exceptions import NotFoundException, ServiceUnavailableException
from property_service.core.results import OperationResult
from property_service.features.jobs.schemas import (
    JobCountResponse,
    RemoveJobsRequest,
    RemoveJobsResponse,
    TrackedJobListResponse,
    TrackedJobResponse,
    UpdateMetadataRequest,
    UpdateMetadataResponse,
)
from property_service.infra.tasks.tracking import JOB_NOT_FOUND

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _unwrap(result: OperationResult[Any]) -> Any:
    if not result.success:
        raise ServiceUnavailableException(
            detail=result.error or "Job registry is temporarily unavailable",
            extra={"service": "job-registry"},
        )
    return result.data


@router.get(
    "",
    response_model=TrackedJobListResponse,
    summary="List tracked jobs",
)
async def list_jobs(user_id: UserIdHeader, registry: JobRegistryDep) -> TrackedJobListResponse:
    jobs = _unwrap(await registry.list_for_user(user_id))
    return TrackedJobListResponse(jobs=[TrackedJobResponse.from_job(job) for job in jobs], count=len(jobs))


@router.get(
    "/count",
    response_model=JobCountResponse,
    summary="Count tracked jobs",
)
async def count_jobs(user_id: UserIdHeader, registry: JobRegistryDep) -> JobCountResponse:
    return JobCountResponse(count=_unwrap(await registry.count(user_id)))


@router.delete(
    "",
    response_model=RemoveJobsResponse,
    summary="Remove completed jobs",
)
async def remove_jobs(
    body: RemoveJobsRequest,
    user_id: UserIdHeader,
    registry: JobRegistryDep,
) -> RemoveJobsResponse:
    data = _unwrap(await registry.remove_completed(user_id, body.job_ids))
    return RemoveJobsResponse(removed_count=data["removed_count"])


@router.patch(
    "/{job_id}/metadata",
    response_model=UpdateMetadataResponse,
    summary="Update job metadata",
)
async def update_job_metadata(
    job_id: str,
    body: UpdateMetadataRequest,
    user_id: UserIdHeader,
    registry: JobRegistryDep,
) -> UpdateMetadataResponse:
    job = _unwrap(await registry.get(job_id))
    if job is None or job.user_id != user_id:
        raise NotFoundException(detail=f"Job not found: {job_id}", type="job-not-found")

    result = await registry.update_metadata(job_id, body.metadata)
    if not result.success and result.error == JOB_NOT_FOUND:
        raise NotFoundException(detail=f"Job not found: {job_id}", type="job-not-found")
    data = _unwrap(result)
    return UpdateMetadataResponse(job_id=data["job_id"], metadata=data["metadata"])
