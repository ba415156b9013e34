"""Modular Pydantic Settings v2 configuration.

One frozen settings model per domain, loaded from environment variables
(and an optional ``.env`` file) and cached by the loaders in ``loader``.

Import settings via cached loaders:
    from property_service.core.settings import get_task_settings

Or use unified settings for access to every domain:
    from property_service.core.settings import get_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .cron import CronSettings
from .loader import (
    clear_all_settings_caches,
    get_app_settings,
    get_cron_settings,
    get_logging_settings,
    get_redis_settings,
    get_sse_settings,
    get_task_settings,
)
from .logs import LoggingSettings
from .redis import RedisSettings
from .sse import SSESettings
from .tasks import TaskSettings
from .unified import Settings, get_settings

__all__ = [
    "AppSettings",
    "CronSettings",
    "LoggingSettings",
    "RedisSettings",
    "SSESettings",
    "Settings",
    "TaskSettings",
    "clear_all_settings_caches",
    "get_app_settings",
    "get_cron_settings",
    "get_logging_settings",
    "get_redis_settings",
    "get_settings",
    "get_sse_settings",
    "get_task_settings",
]
