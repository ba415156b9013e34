"""Pydantic schemas for realtime push endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SessionStats(BaseModel):
    """Push session statistics of this process."""

    total_connections: int = Field(..., description="Open push sessions")
    personal_sessions: int = Field(..., description="Caller's open personal sessions")
    announcement_sessions: int = Field(..., description="Caller's open announcement sessions")
