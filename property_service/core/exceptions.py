"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    Follows RFC 7807 Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code."""
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ServiceUnavailableException(AppException):
    """Exception raised when a backing service is temporarily unavailable.

    Example:
        raise ServiceUnavailableException(
            detail="Job registry is temporarily unavailable",
            extra={"service": "redis"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "service-unavailable",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=503,
            detail=detail,
            type=type,
            title="Service Unavailable",
            instance=instance,
            extra=extra,
        )


# ──────────────────────────────────────────────────────────────
# Domain errors
# ──────────────────────────────────────────────────────────────


class CronJobNotFoundError(NotFoundException):
    """Raised when a cron job name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            detail=f"Cron job not found: {name}",
            type="cron-job-not-found",
            extra={"job_name": name},
        )
        self.name = name


class CronJobConfigurationError(AppException):
    """Raised for an invalid or conflicting cron job descriptor.

    Configuration errors are fatal at startup and are never retried.
    """

    def __init__(self, detail: str, *, name: str | None = None) -> None:
        super().__init__(
            status_code=500,
            detail=detail,
            type="cron-job-configuration",
            title="Cron Job Configuration Error",
            extra={"job_name": name} if name else None,
        )
        self.name = name


class SessionClosedError(Exception):
    """Raised when pushing to a push session whose client has gone away."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Push session {session_id} is closed")
        self.session_id = session_id
