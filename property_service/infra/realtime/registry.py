"""Registry of live push sessions grouped by tenant, user and channel.

Sessions are grouped under ``(tenant_id, user_id, channel_type)``:

- ``send_to_user`` pushes to one user's personal sessions within a tenant
- ``broadcast_to_client`` pushes to every announcement session of a tenant

A push that fails on one session is logged, counted and skipped so the other
sessions of the group still receive the event. A payload that cannot be
encoded fails on every session and is reported as not delivered, never raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
import logging
from typing import TYPE_CHECKING, Any, NamedTuple

from pydantic import BaseModel

from property_service.core.exceptions import SessionClosedError
from property_service.infra.metrics.prometheus import (
    push_deliveries_total,
    push_delivery_failures_total,
    sse_sessions_active,
)
from property_service.infra.realtime.events import ChannelType

if TYPE_CHECKING:
    from fastapi import Request

    from property_service.infra.realtime.session import PushSession, SSETransport

logger = logging.getLogger(__name__)


class SessionKey(NamedTuple):
    tenant_id: str
    user_id: str
    channel_type: ChannelType


def normalize_payload(data: Any) -> Any:
    """Convert models and dataclasses into plain JSON-ready structures."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    if isinstance(data, Mapping):
        return dict(data)
    return data


class SessionRegistry:
    """Tracks push sessions and delivers payloads to them.

    Example:
        registry = SessionRegistry(SSETransport(), max_sessions_per_user=10)
        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL, request)
        await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}, "job.completed")
    """

    def __init__(self, transport: SSETransport, *, max_sessions_per_user: int = 10) -> None:
        self._transport = transport
        self._max_sessions_per_user = max_sessions_per_user
        self._groups: dict[SessionKey, list[PushSession]] = {}
        self._lock = asyncio.Lock()

    async def connect(
        self,
        user_id: str,
        tenant_id: str,
        channel_type: ChannelType,
        request: Request | None = None,
    ) -> PushSession:
        """Open a session and add it to its group.

        Raises:
            ConnectionRefusedError: If the group already holds the maximum number of sessions.
        """
        key = SessionKey(tenant_id, user_id, ChannelType(channel_type))

        async with self._lock:
            group = self._groups.get(key, [])
            if sum(1 for s in group if s.is_connected) >= self._max_sessions_per_user:
                logger.warning(
                    "Session refused: max sessions reached",
                    extra={"user_id": user_id, "tenant_id": tenant_id, "max": self._max_sessions_per_user},
                )
                msg = "Maximum sessions reached"
                raise ConnectionRefusedError(msg)

            try:
                session = await self._transport.create_session(user_id, tenant_id, key.channel_type, request)
            except Exception as e:
                logger.error(
                    "Failed to create push session",
                    extra={"user_id": user_id, "tenant_id": tenant_id, "error": str(e)},
                )
                raise

            session.on_disconnected(lambda s: self._handle_disconnect(s, key))
            self._groups.setdefault(key, []).append(session)

        self._update_session_metrics()
        logger.info(
            "Push session connected",
            extra={
                "session_id": session.session_id,
                "user_id": user_id,
                "tenant_id": tenant_id,
                "channel_type": key.channel_type.value,
                "total_sessions": self.get_total_active_connections(),
            },
        )
        return session

    async def send_to_user(
        self,
        user_id: str,
        tenant_id: str,
        payload: Any,
        event_type: str = "notification",
    ) -> bool:
        """Push to the user's personal sessions.

        Returns:
            True if at least one session received the payload.
        """
        key = SessionKey(tenant_id, user_id, ChannelType.PERSONAL)
        async with self._lock:
            sessions = list(self._groups.get(key, []))

        if not sessions:
            logger.debug("No active sessions for user", extra={"user_id": user_id, "tenant_id": tenant_id})
            return False

        sent = self._push_all(sessions, normalize_payload(payload), event_type)
        logger.info(
            "Message sent to user sessions",
            extra={
                "user_id": user_id,
                "tenant_id": tenant_id,
                "event_type": event_type,
                "total_sessions": len(sessions),
                "sent_to_sessions": sent,
            },
        )
        return sent > 0

    async def broadcast_to_client(
        self,
        tenant_id: str,
        payload: Any,
        event_type: str = "announcement",
    ) -> int:
        """Push to every announcement session of the tenant.

        Returns:
            Number of sessions the payload was pushed to.
        """
        async with self._lock:
            sessions = [
                session
                for key, group in self._groups.items()
                if key.tenant_id == tenant_id and key.channel_type is ChannelType.ANNOUNCEMENT
                for session in group
            ]

        sent = self._push_all(sessions, normalize_payload(payload), event_type)
        logger.debug("Broadcast message to client", extra={"tenant_id": tenant_id, "sent_count": sent})
        return sent

    def get_active_session_count(self, user_id: str, tenant_id: str, channel_type: ChannelType) -> int:
        key = SessionKey(tenant_id, user_id, ChannelType(channel_type))
        return sum(1 for s in self._groups.get(key, []) if s.is_connected)

    def get_total_active_connections(self) -> int:
        return sum(1 for group in self._groups.values() for s in group if s.is_connected)

    async def cleanup(self) -> None:
        """Close every session and drop every group."""
        async with self._lock:
            sessions = [s for group in self._groups.values() for s in group]
            self._groups.clear()

        for session in sessions:
            session.close()

        self._update_session_metrics()
        logger.info("Push sessions cleaned up", extra={"sessions_closed": len(sessions)})

    def _push_all(self, sessions: list[PushSession], data: Any, event_type: str) -> int:
        sent = 0
        for session in sessions:
            if not session.is_connected:
                logger.warning("Session not connected, skipping", extra={"session_id": session.session_id})
                continue
            try:
                session.push(data, event_type)
            except (SessionClosedError, asyncio.QueueFull, TypeError, ValueError) as e:
                push_delivery_failures_total.labels(event_type=event_type).inc()
                logger.error(
                    "Failed to push message to session",
                    extra={
                        "session_id": session.session_id,
                        "user_id": session.user_id,
                        "tenant_id": session.tenant_id,
                        "event_type": event_type,
                        "error": str(e) or type(e).__name__,
                    },
                )
                continue
            push_deliveries_total.labels(event_type=event_type).inc()
            sent += 1
        return sent

    def _handle_disconnect(self, session: PushSession, key: SessionKey) -> None:
        # Lock-held sections never await after the group is mutated, so this
        # synchronous hook cannot interleave with them.
        group = self._groups.get(key)
        if group is not None:
            if session in group:
                group.remove(session)
            if not group:
                del self._groups[key]

        self._update_session_metrics()
        logger.info(
            "Push session disconnected",
            extra={
                "session_id": session.session_id,
                "user_id": session.user_id,
                "tenant_id": session.tenant_id,
                "total_sessions": self.get_total_active_connections(),
            },
        )

    def _update_session_metrics(self) -> None:
        sse_sessions_active.set(self.get_total_active_connections())
