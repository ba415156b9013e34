"""Server-Sent Events router for realtime delivery.

Endpoints:
- GET /sse/personal: Stream of events addressed to the current user
- GET /sse/announcements: Stream of announcements for the current tenant
- GET /sse/stats: Session statistics

Event format:
    id: 3f1c...
    event: job.completed
    data: {"id":"...","event_type":"job.completed","job_id":"...","job_type":"csv_import"}
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from property_service.app.dependencies import (
    ContainerDep,
    SessionRegistryDep,
    TenantIdHeader,
    UserIdHeader,
)
from property_service.core.exceptions import AppException, ServiceUnavailableException
from property_service.features.realtime.schemas import SessionStats
from property_service.infra.realtime import ChannelType, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sse", tags=["realtime"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def _open_stream(
    request: Request,
    container: ContainerDep,
    sessions: SessionRegistry,
    user_id: str,
    tenant_id: str,
    channel_type: ChannelType,
) -> StreamingResponse:
    if not container.settings.sse.enabled:
        raise ServiceUnavailableException(detail="Server-Sent Events are disabled")

    try:
        session = await sessions.connect(user_id, tenant_id, channel_type, request)
    except ConnectionRefusedError as e:
        raise AppException(
            status_code=429,
            detail=str(e),
            type="too-many-sessions",
            title="Too Many Requests",
            extra={"channel_type": channel_type.value},
        ) from e

    return StreamingResponse(session.stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get(
    "/personal",
    summary="Personal event stream",
    response_class=StreamingResponse,
)
async def personal_stream(
    request: Request,
    container: ContainerDep,
    sessions: SessionRegistryDep,
    user_id: UserIdHeader,
    tenant_id: TenantIdHeader,
) -> StreamingResponse:
    """Events addressed to the current user, such as job completions."""
    return await _open_stream(request, container, sessions, user_id, tenant_id, ChannelType.PERSONAL)


@router.get(
    "/announcements",
    summary="Tenant announcement stream",
    response_class=StreamingResponse,
)
async def announcement_stream(
    request: Request,
    container: ContainerDep,
    sessions: SessionRegistryDep,
    user_id: UserIdHeader,
    tenant_id: TenantIdHeader,
) -> StreamingResponse:
    """Announcements broadcast to every user of the current tenant."""
    return await _open_stream(request, container, sessions, user_id, tenant_id, ChannelType.ANNOUNCEMENT)


@router.get(
    "/stats",
    response_model=SessionStats,
    summary="Get push session statistics",
)
async def get_stats(
    sessions: SessionRegistryDep,
    user_id: UserIdHeader,
    tenant_id: TenantIdHeader,
) -> SessionStats:
    return SessionStats(
        total_connections=sessions.get_total_active_connections(),
        personal_sessions=sessions.get_active_session_count(user_id, tenant_id, ChannelType.PERSONAL),
        announcement_sessions=sessions.get_active_session_count(user_id, tenant_id, ChannelType.ANNOUNCEMENT),
    )
