"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from property_service.core.settings.loader import get_app_settings

    settings = get_app_settings()

Testing:
    In tests, clear the cache to force reload:
    get_app_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .cron import CronSettings
from .logs import LoggingSettings
from .redis import RedisSettings
from .sse import SSESettings
from .tasks import TaskSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    """Get cached Redis settings.

    Returns:
        Validated and frozen RedisSettings instance.
    """
    return RedisSettings()


@lru_cache(maxsize=1)
def get_task_settings() -> TaskSettings:
    """Get cached task queue and job registry settings.

    Returns:
        Validated and frozen TaskSettings instance.
    """
    return TaskSettings()


@lru_cache(maxsize=1)
def get_cron_settings() -> CronSettings:
    """Get cached cron orchestration settings."""
    return CronSettings()


@lru_cache(maxsize=1)
def get_sse_settings() -> SSESettings:
    """Get cached Server-Sent Events settings."""
    return SSESettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_settings_caches() -> None:
    """Clear every cached settings instance (tests and reloads)."""
    for loader in (
        get_app_settings,
        get_redis_settings,
        get_task_settings,
        get_cron_settings,
        get_sse_settings,
        get_logging_settings,
    ):
        loader.cache_clear()
