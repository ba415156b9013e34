"""Unified settings composition for convenient access.

Usage:
    from property_service.core.settings import get_settings

    settings = get_settings()
    print(settings.tasks.job_ttl_seconds)
    print(settings.sse.keepalive_interval)

Each nested settings class still loads from its own environment prefix
(APP_, REDIS_, TASK_, ...). The composition root takes this object so that
tests can hand it explicit instances instead of patching environment.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .app import AppSettings
from .cron import CronSettings
from .logs import LoggingSettings
from .redis import RedisSettings
from .sse import SSESettings
from .tasks import TaskSettings


class Settings(BaseSettings):
    """Unified settings composing all domain settings.

    Example:
        settings = Settings(cron=CronSettings(enabled=False))
        assert settings.cron.enabled is False
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    tasks: TaskSettings = Field(default_factory=TaskSettings)
    cron: CronSettings = Field(default_factory=CronSettings)
    sse: SSESettings = Field(default_factory=SSESettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get unified settings instance (cached)."""
    return Settings()
