"""Success/failure envelope returned by cache-backed operations."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class OperationResult(BaseModel, Generic[T]):
    """Outcome of an operation that never raises across its boundary.

    Exactly one of ``data`` and ``error`` is meaningful: ``success=True``
    carries ``data`` (possibly an empty collection), ``success=False`` carries
    ``error``.
    """

    success: bool
    data: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, data: T) -> OperationResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> OperationResult[T]:
        return cls(success=False, data=None, error=error)
