"""Event bus to push session bridge.

Architecture:
    Worker → EventBus (local or Redis Pub/Sub) → EventBridge → SessionRegistry → Clients

Events with a ``user_id`` go to that user's personal sessions; events without
one are broadcast to the tenant's announcement sessions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from property_service.infra.realtime.events import EventBus, RealtimeEvent
    from property_service.infra.realtime.registry import SessionRegistry

logger = logging.getLogger(__name__)


class EventBridge:
    """Forwards bus events to connected push sessions.

    Example:
        bridge = EventBridge(bus, sessions)
        bridge.start()
        ...
        bridge.stop()
    """

    def __init__(self, bus: EventBus, sessions: SessionRegistry) -> None:
        self._bus = bus
        self._sessions = sessions
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._bus.subscribe(self.handle)
        self._running = True
        logger.info("Event bridge started")

    def stop(self) -> None:
        self._bus.unsubscribe(self.handle)
        self._running = False
        logger.info("Event bridge stopped")

    async def handle(self, event: RealtimeEvent) -> None:
        """Deliver one event through the session registry."""
        data = {
            "id": event.id,
            "event_type": event.event_type,
            "timestamp": event.timestamp.isoformat(),
            **event.payload,
        }

        if event.user_id:
            delivered = await self._sessions.send_to_user(event.user_id, event.tenant_id, data, event.event_type)
            recipients = 1 if delivered else 0
        else:
            recipients = await self._sessions.broadcast_to_client(event.tenant_id, data, event.event_type)

        logger.debug(
            "Event forwarded to push sessions",
            extra={
                "event_id": event.id,
                "event_type": event.event_type,
                "tenant_id": event.tenant_id,
                "user_id": event.user_id,
                "recipients": recipients,
            },
        )
