"""Cron administration API router.

Endpoints:
- GET /cron/jobs: Registered cron jobs
- GET /cron/next: Upcoming runs of enabled jobs
- POST /cron/jobs/{name}/enable: Schedule a disabled job again
- POST /cron/jobs/{name}/disable: Stop scheduling a job

Every endpoint answers 503 when cron is disabled in this process.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from property_service.app.dependencies import CronOrchestratorDep
from property_service.features.cron.schemas import (
    CronJobListResponse,
    CronJobResponse,
    NextExecutionsResponse,
    ScheduledRunResponse,
)
from property_service.features.cron.service import CronOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def _to_response(orchestrator: CronOrchestrator, name: str) -> CronJobResponse:
    return CronJobResponse.from_job(
        orchestrator.get(name),
        default_timezone=orchestrator.default_timezone,
        default_timeout=orchestrator.default_timeout,
    )


@router.get(
    "/jobs",
    response_model=CronJobListResponse,
    summary="List cron jobs",
)
async def list_cron_jobs(orchestrator: CronOrchestratorDep) -> CronJobListResponse:
    jobs = [_to_response(orchestrator, job.name) for job in orchestrator.jobs()]
    return CronJobListResponse(jobs=jobs, count=len(jobs))


@router.get(
    "/next",
    response_model=NextExecutionsResponse,
    summary="Upcoming cron runs",
    description="Next run of every enabled cron job, earliest first.",
)
async def next_executions(orchestrator: CronOrchestratorDep) -> NextExecutionsResponse:
    runs = await orchestrator.next_executions()
    return NextExecutionsResponse(
        executions=[ScheduledRunResponse(job=run.job, next_run=run.next_run) for run in runs]
    )


@router.post(
    "/jobs/{name}/enable",
    response_model=CronJobResponse,
    summary="Enable a cron job",
)
async def enable_cron_job(name: str, orchestrator: CronOrchestratorDep) -> CronJobResponse:
    await orchestrator.enable(name)
    return _to_response(orchestrator, name)


@router.post(
    "/jobs/{name}/disable",
    response_model=CronJobResponse,
    summary="Disable a cron job",
)
async def disable_cron_job(name: str, orchestrator: CronOrchestratorDep) -> CronJobResponse:
    await orchestrator.disable(name)
    return _to_response(orchestrator, name)
