"""Server-Sent Events configuration settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EventBusBackend = Literal["local", "redis"]


class SSESettings(BaseSettings):
    """Real-time push session settings.

    Environment variables use SSE_ prefix.
    Example: SSE_KEEPALIVE_INTERVAL=15
    """

    # ──────────────────────────────────────────────────────────────
    # Feature flags
    # ──────────────────────────────────────────────────────────────

    enabled: bool = Field(default=True, description="Enable SSE endpoints")

    # ──────────────────────────────────────────────────────────────
    # Session limits
    # ──────────────────────────────────────────────────────────────

    max_sessions_per_user: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum open sessions per (tenant, user, channel)",
    )

    queue_maxsize: int = Field(
        default=256,
        ge=1,
        le=10000,
        description="Frames buffered per session before pushes are rejected",
    )

    # ──────────────────────────────────────────────────────────────
    # Keep-alive settings
    # ──────────────────────────────────────────────────────────────

    keepalive_interval: float = Field(
        default=15.0,
        gt=0,
        le=300,
        description="Seconds between keep-alive comments on idle streams",
    )

    # ──────────────────────────────────────────────────────────────
    # Event bus
    # ──────────────────────────────────────────────────────────────

    event_bus_backend: EventBusBackend = Field(
        default="local",
        description="Event bus transport: 'local' (in-process) or 'redis' (Pub/Sub, cross-process)",
    )

    event_channel: str = Field(
        default="property-service:events",
        min_length=1,
        max_length=100,
        description="Redis Pub/Sub channel carrying real-time events",
    )

    model_config = SettingsConfigDict(
        env_prefix="SSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
