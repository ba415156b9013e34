"""Redis cache configuration settings."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, urlparse

from pydantic import Field, SecretStr, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric


class RedisSettings(BaseSettings):
    """Redis settings for the job registry and the cross-process event bus.

    Environment variables use REDIS_ prefix.
    Example: REDIS_URL="redis://localhost:6379/0"

    Either provide REDIS_URL (components are parsed from it) or the
    individual host/port/db fields (the URL is built from them).
    """

    # ──────────────────────────────────────────────────────────────
    # Connection configuration
    # ──────────────────────────────────────────────────────────────

    redis_url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection URL (redis://[username:password@]host:port/db). Overrides component fields.",
    )

    host: str = Field(default="localhost", description="Redis server hostname or IP address")

    port: int = Field(default=6379, ge=1, le=65535, description="Redis server port")

    db: int = Field(default=0, ge=0, le=15, description="Redis database number (0-15)")

    username: str | None = Field(default=None, description="Redis username (Redis 6+ ACL)")

    password: SecretStr | None = Field(default=None, description="Redis password")

    ssl_enabled: bool = Field(
        default=False,
        description="Enable SSL/TLS for the Redis connection (rediss:// scheme)",
    )

    # ──────────────────────────────────────────────────────────────
    # Connection pool settings
    # ──────────────────────────────────────────────────────────────

    max_connections: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum Redis connection pool size",
    )

    socket_timeout: float = Field(
        default=5.0,
        ge=0.1,
        le=30.0,
        description="Redis socket timeout in seconds (for operations)",
    )

    socket_connect_timeout: float = Field(
        default=5.0,
        ge=0.1,
        le=30.0,
        description="Redis socket connection timeout in seconds",
    )

    socket_keepalive: bool = Field(default=True, description="Enable TCP keepalive")

    health_check_interval: int = Field(
        default=30,
        ge=0,
        le=300,
        description="Connection health check interval in seconds (0 to disable)",
    )

    # ──────────────────────────────────────────────────────────────
    # Startup behaviour
    # ──────────────────────────────────────────────────────────────

    startup_require_cache: bool = Field(
        default=False,
        description="Fail application startup if Redis is unavailable (False = degraded mode)",
    )

    # ──────────────────────────────────────────────────────────────
    # Validators and computed fields
    # ──────────────────────────────────────────────────────────────

    @model_validator(mode="after")
    def _apply_url(self) -> RedisSettings:
        """Parse redis_url into component fields if provided."""
        if self.redis_url:
            parsed = urlparse(self.redis_url)

            if parsed.hostname:
                object.__setattr__(self, "host", parsed.hostname)
            if parsed.port:
                object.__setattr__(self, "port", parsed.port)
            if parsed.path and len(parsed.path) > 1:
                try:
                    object.__setattr__(self, "db", int(parsed.path.lstrip("/")))
                except ValueError:
                    pass
            if parsed.username:
                object.__setattr__(self, "username", parsed.username)
            if parsed.password:
                object.__setattr__(self, "password", SecretStr(parsed.password))
            if parsed.scheme == "rediss":
                object.__setattr__(self, "ssl_enabled", True)

        return self

    @field_validator("health_check_interval", "max_connections", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments (e.g., "30  # seconds")."""
        return sanitize_inline_numeric(value)

    @computed_field
    @property
    def url(self) -> str:
        """Build the Redis URL from component fields."""
        scheme = "rediss" if self.ssl_enabled else "redis"

        auth = ""
        if self.username or self.password:
            username_part = quote(self.username) if self.username else ""
            password_part = quote(self.password.get_secret_value()) if self.password else ""
            if username_part and password_part:
                auth = f"{username_part}:{password_part}@"
            elif password_part:
                auth = f":{password_part}@"

        return f"{scheme}://{auth}{self.host}:{self.port}/{self.db}"

    @computed_field
    @property
    def is_configured(self) -> bool:
        """Redis counts as configured when a URL or a non-default host is set."""
        return self.redis_url is not None or self.host != "localhost"

    def connection_pool_kwargs(self) -> dict[str, Any]:
        """Return kwargs for redis.asyncio.ConnectionPool.from_url()."""
        kwargs: dict[str, Any] = {
            "max_connections": self.max_connections,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "socket_keepalive": self.socket_keepalive,
            "decode_responses": True,
            "encoding": "utf-8",
        }
        if self.health_check_interval > 0:
            kwargs["health_check_interval"] = self.health_check_interval
        return kwargs

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )
