"""Real-time event bus.

Workers publish domain events here; the event bridge subscribes and hands them
to the session registry. Two transports are available:

1. ``LocalEventBus``: in-process, handlers awaited in subscription order.
2. ``RedisEventBus``: Redis Pub/Sub, so an event published in one process
   reaches sessions held by every process listening on the channel.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections.abc import Awaitable, Callable
import contextlib
from datetime import UTC, datetime
from enum import StrEnum
import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from redis.exceptions import RedisError

from property_service.infra.metrics.prometheus import (
    event_bus_listener_errors_total,
    event_bus_published_total,
)

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

    from property_service.infra.cache import RedisCache

logger = logging.getLogger(__name__)

LISTENER_BACKOFF_BASE = 0.5  # seconds
LISTENER_MAX_BACKOFF = 30.0


def calculate_backoff(attempt_count: int) -> float:
    """Seconds to wait before resubscribing: 0.5s, 1s, 2s, ... capped at 30s."""
    return min(LISTENER_BACKOFF_BASE * (2**attempt_count), LISTENER_MAX_BACKOFF)


class ChannelType(StrEnum):
    """Kind of push stream a client opens."""

    PERSONAL = "personal"
    ANNOUNCEMENT = "announcement"


class RealtimeEvent(BaseModel):
    """A domain event on its way to connected clients.

    Events carrying a ``user_id`` go to that user's personal sessions; events
    without one are announcements for every session of the tenant.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    event_type: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    user_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.PERSONAL if self.user_id else ChannelType.ANNOUNCEMENT


EventHandler = Callable[[RealtimeEvent], Awaitable[None]]


class EventBus(ABC):
    """Publish/subscribe contract shared by the bus transports."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        with contextlib.suppress(ValueError):
            self._handlers.remove(handler)

    async def start(self) -> None:  # noqa: B027
        """Start background resources (no-op by default)."""

    async def stop(self) -> None:  # noqa: B027
        """Release background resources (no-op by default)."""

    @abstractmethod
    async def publish(self, event: RealtimeEvent) -> int:
        """Publish an event.

        Returns:
            Number of receivers reached (local handlers or Redis subscribers).
        """

    async def _dispatch(self, event: RealtimeEvent) -> int:
        delivered = 0
        for handler in list(self._handlers):
            try:
                await handler(event)
                delivered += 1
            except Exception as e:
                logger.exception(
                    "Event handler failed",
                    extra={"event_id": event.id, "event_type": event.event_type, "error": str(e)},
                )
        return delivered


class LocalEventBus(EventBus):
    """In-process bus for single-replica deployments and tests."""

    async def publish(self, event: RealtimeEvent) -> int:
        event_bus_published_total.labels(event_type=event.event_type).inc()
        return await self._dispatch(event)


class RedisEventBus(EventBus):
    """Redis Pub/Sub bus for cross-process delivery.

    Example:
        bus = RedisEventBus(cache, channel="property-service:events")
        await bus.start()
        bus.subscribe(bridge.handle)
        await bus.publish(RealtimeEvent(event_type="job.completed", tenant_id="t1", user_id="u1"))
        await bus.stop()
    """

    def __init__(self, cache: RedisCache, *, channel: str) -> None:
        super().__init__()
        self._cache = cache
        self._channel = channel
        self._pubsub: PubSub | None = None
        self._listener_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Subscribe to the channel and start the listener task."""
        if self._running:
            return

        self._pubsub = self._cache.client.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._running = True
        self._listener_task = asyncio.create_task(self._pubsub_listener())
        logger.info("Redis event bus started", extra={"channel": self._channel})

    async def stop(self) -> None:
        self._running = False

        if self._listener_task:
            self._listener_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener_task
            self._listener_task = None

        if self._pubsub:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
            self._pubsub = None

        logger.info("Redis event bus stopped", extra={"channel": self._channel})

    async def publish(self, event: RealtimeEvent) -> int:
        receivers = await self._cache.client.publish(self._channel, event.model_dump_json())
        event_bus_published_total.labels(event_type=event.event_type).inc()
        logger.debug(
            "Event published",
            extra={"event_id": event.id, "event_type": event.event_type, "receivers": receivers},
        )
        return int(receivers)

    async def handle_message(self, message: dict[str, Any]) -> int:
        """Decode one Pub/Sub message and dispatch it to local handlers."""
        if message.get("type") != "message":
            return 0

        data = message["data"]
        if isinstance(data, bytes):
            data = data.decode()

        try:
            event = RealtimeEvent.model_validate_json(data)
        except ValidationError as e:
            logger.warning(
                "Dropping malformed event",
                extra={"channel": self._channel, "error": str(e)},
            )
            return 0

        return await self._dispatch(event)

    async def _pubsub_listener(self) -> None:
        """Listen for Pub/Sub messages and dispatch them locally.

        A dropped connection does not end the listener: the subscription is
        rebuilt with exponential backoff for as long as the bus is running.
        """
        attempt = 0
        while self._running:
            try:
                if self._pubsub is None:
                    self._pubsub = self._cache.client.pubsub()
                    await self._pubsub.subscribe(self._channel)
                    logger.info("Event bus resubscribed", extra={"channel": self._channel, "attempt": attempt})

                async for message in self._pubsub.listen():
                    if not self._running:
                        return
                    attempt = 0
                    await self.handle_message(message)
                # listen() only ends once the connection is gone
                msg = "Pub/Sub stream ended"
                raise ConnectionError(msg)
            except asyncio.CancelledError:
                return
            except (RedisError, RuntimeError, OSError) as e:
                event_bus_listener_errors_total.inc()
                delay = calculate_backoff(attempt)
                logger.error(
                    "Event bus listener error, resubscribing",
                    extra={"channel": self._channel, "error": str(e), "attempt": attempt, "retry_in": delay},
                )
                await self._drop_pubsub()
                attempt += 1
                await asyncio.sleep(delay)

    async def _drop_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.aclose()
        except (RedisError, OSError) as e:
            logger.debug("Error closing Pub/Sub connection", extra={"error": str(e)})
