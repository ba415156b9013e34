"""Tracked job types and records."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobType(StrEnum):
    """Background job kinds a user can follow from the client.

    Values use underscores (``media_upload``) and are what the API returns.
    Hyphenated display aliases (``media-upload``) are accepted on input and
    map to the same member.
    """

    UNIT_BATCH_CREATION = "unit_batch_creation"
    CSV_IMPORT = "csv_import"
    CSV_VALIDATION = "csv_validation"
    MEDIA_UPLOAD = "media_upload"
    DOCUMENT_PROCESSING = "document_processing"

    @classmethod
    def _missing_(cls, value: object) -> JobType | None:
        # Accept display aliases such as "csv-import"
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class TrackedJob(BaseModel):
    """A job the registry associates with its owning user."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(min_length=1)
    job_type: JobType
    user_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] | None = None

    @field_validator("created_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
