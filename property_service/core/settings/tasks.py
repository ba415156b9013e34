"""Task queue and job tracking configuration settings.

Environment variables use TASK_ prefix.
Example: TASK_JOB_TTL_SECONDS=7200
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._sanitizers import sanitize_inline_numeric

DEFAULT_QUEUES: list[str] = [
    "property_media",
    "email",
    "event_bus",
    "property",
    "property_unit",
    "upload",
    "invitation",
    "esignature",
    "pdf_generator",
    "cron",
]


class TaskSettings(BaseSettings):
    """Task queue, lazy queue registry and job registry settings.

    Environment variables use TASK_ prefix.

    ``known_queues`` and ``known_workers`` drive the warm-up performed by
    ``QueueFactory.initialize_all()``. Names without a registered provider are
    logged and skipped.
    """

    # ──────────────────────────────────────────────────────────────
    # Job registry
    # ──────────────────────────────────────────────────────────────

    job_ttl_seconds: int = Field(
        default=7200,
        ge=60,
        le=604800,
        description="Lifetime of tracked job records and per-user membership sets (seconds)",
    )

    # ──────────────────────────────────────────────────────────────
    # Lazy queue/worker registry
    # ──────────────────────────────────────────────────────────────

    known_queues: list[str] = Field(
        default_factory=lambda: list(DEFAULT_QUEUES),
        description="Queue names warmed up by initialize_all()",
    )

    known_workers: list[str] = Field(
        default_factory=lambda: ["cron"],
        description="Worker names warmed up by initialize_all()",
    )

    eager_initialize: bool = Field(
        default=False,
        description="Warm up every known queue and worker at startup instead of on first use",
    )

    job_type_queues: dict[str, str] = Field(
        default_factory=lambda: {
            "unit_batch_creation": "property_unit",
            "csv_import": "upload",
            "csv_validation": "upload",
            "media_upload": "property_media",
            "document_processing": "pdf_generator",
        },
        description="Queue used when submitting each tracked job type",
    )

    # ──────────────────────────────────────────────────────────────
    # Execution settings
    # ──────────────────────────────────────────────────────────────

    default_timeout_seconds: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Timeout applied to tasks enqueued without one (seconds)",
    )

    max_async_tasks: int = Field(
        default=30,
        ge=1,
        le=1000,
        description="Maximum number of tasks the in-process broker runs concurrently",
    )

    @field_validator("job_ttl_seconds", "default_timeout_seconds", "max_async_tasks", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments (e.g., "7200  # 2 hours")."""
        return sanitize_inline_numeric(value)

    model_config = SettingsConfigDict(
        env_prefix="TASK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
