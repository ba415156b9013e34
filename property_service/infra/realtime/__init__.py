"""Realtime infrastructure for Server-Sent Events push delivery.

This module provides the core infrastructure for real-time communication:
- SessionRegistry: track push sessions per tenant, user and channel
- EventBus: publish domain events (in-process or Redis Pub/Sub)
- EventBridge: forward bus events to the matching sessions

Architecture:
    When running multiple replicas, a worker may finish a job in a process
    that does not hold the user's session. The Redis event bus fans each
    event out to every replica, and each replica's bridge delivers it to the
    sessions it holds.

    Worker (Replica 1) ──► Redis Pub/Sub ──┬──► Bridge (Replica 1) ──► Sessions
                                           └──► Bridge (Replica 2) ──► Sessions
"""

from property_service.infra.realtime.bridge import EventBridge
from property_service.infra.realtime.events import (
    ChannelType,
    EventBus,
    LocalEventBus,
    RealtimeEvent,
    RedisEventBus,
)
from property_service.infra.realtime.registry import SessionKey, SessionRegistry, normalize_payload
from property_service.infra.realtime.session import PushSession, SSETransport, encode_frame

__all__ = [
    "ChannelType",
    "EventBridge",
    "EventBus",
    "LocalEventBus",
    "PushSession",
    "RealtimeEvent",
    "RedisEventBus",
    "SSETransport",
    "SessionKey",
    "SessionRegistry",
    "encode_frame",
    "normalize_payload",
]
