"""FastAPI dependencies resolving components from the application container."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from property_service.app.container import AppContainer
from property_service.core.exceptions import ServiceUnavailableException
from property_service.features.cron.service import CronOrchestrator
from property_service.infra.realtime import SessionRegistry
from property_service.infra.tasks.tracking import JobRegistry


def get_container(request: Request) -> AppContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ServiceUnavailableException(detail="Application is not ready")
    return container


ContainerDep = Annotated[AppContainer, Depends(get_container)]


def get_job_registry(container: ContainerDep) -> JobRegistry:
    return container.job_registry


def get_session_registry(container: ContainerDep) -> SessionRegistry:
    return container.sessions


def get_cron_orchestrator(container: ContainerDep) -> CronOrchestrator:
    """Cron orchestrator of this process.

    Raises:
        ServiceUnavailableException: If cron is disabled here (``CRON_ENABLED=false``).
    """
    if container.cron is None:
        raise ServiceUnavailableException(
            detail="Cron orchestration is disabled in this process",
            extra={"service": "cron"},
        )
    return container.cron


JobRegistryDep = Annotated[JobRegistry, Depends(get_job_registry)]
SessionRegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
CronOrchestratorDep = Annotated[CronOrchestrator, Depends(get_cron_orchestrator)]

# Authentication is handled upstream; the gateway forwards the caller's identity.
UserIdHeader = Annotated[str, Header(alias="X-User-Id", min_length=1)]
TenantIdHeader = Annotated[str, Header(alias="X-Tenant-Id", min_length=1)]
