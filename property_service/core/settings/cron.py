"""Cron orchestration settings."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric


class CronSettings(BaseSettings):
    """Recurring job orchestration settings.

    Environment variables use CRON_ prefix.
    Example: CRON_ENABLED=true, CRON_DEFAULT_TIMEZONE=America/Chicago

    APScheduler decides WHEN a job fires; the task queue decides HOW it runs.
    With several replicas, enable cron on exactly one of them.
    """

    enabled: bool = Field(default=True, description="Register and schedule cron jobs at startup")

    default_timezone: str = Field(
        default="UTC",
        min_length=1,
        description="Timezone applied to cron jobs that do not declare one",
    )

    default_timeout_seconds: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Timeout applied to cron jobs that do not declare one (seconds)",
    )

    misfire_grace_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="How late a fire may run before APScheduler skips it",
    )

    coalesce: bool = Field(
        default=True,
        description="Collapse several missed fires of the same job into one run",
    )

    @field_validator("default_timeout_seconds", "misfire_grace_seconds", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        return sanitize_inline_numeric(value)

    model_config = SettingsConfigDict(
        env_prefix="CRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
