"""Unit tests for SessionRegistry."""

from __future__ import annotations

from dataclasses import dataclass
import json
from unittest.mock import AsyncMock

from pydantic import BaseModel
import pytest

from property_service.infra.metrics import REGISTRY
from property_service.infra.realtime import (
    ChannelType,
    SessionRegistry,
    SSETransport,
    normalize_payload,
)


def drain(session) -> list[dict]:
    """Decode every buffered data frame of a session."""
    frames = []
    while session.pending:
        frame = session._queue.get_nowait()
        for line in frame.splitlines():
            if line.startswith("data: "):
                frames.append(json.loads(line.removeprefix("data: ")))
    return frames


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry(SSETransport(queue_maxsize=4, keepalive_interval=0.05), max_sessions_per_user=2)


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_tracks_session(self, registry):
        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        assert session.is_connected
        assert registry.get_active_session_count("user-1", "tenant-1", ChannelType.PERSONAL) == 1
        assert registry.get_total_active_connections() == 1

    @pytest.mark.asyncio
    async def test_session_limit_per_user_and_channel(self, registry):
        await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        with pytest.raises(ConnectionRefusedError, match="Maximum sessions reached"):
            await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        # Other channels and tenants have their own budget
        await registry.connect("user-1", "tenant-1", ChannelType.ANNOUNCEMENT)
        await registry.connect("user-1", "tenant-2", ChannelType.PERSONAL)
        assert registry.get_total_active_connections() == 4

    @pytest.mark.asyncio
    async def test_closed_sessions_free_their_slot(self, registry):
        first = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        first.close()

        await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        assert registry.get_active_session_count("user-1", "tenant-1", ChannelType.PERSONAL) == 2

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self):
        transport = AsyncMock()
        transport.create_session.side_effect = RuntimeError("transport down")
        registry = SessionRegistry(transport)

        with pytest.raises(RuntimeError, match="transport down"):
            await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        assert registry.get_total_active_connections() == 0


class TestSendToUser:
    @pytest.mark.asyncio
    async def test_pushes_to_every_personal_session(self, registry):
        first = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        second = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        announcements = await registry.connect("user-1", "tenant-1", ChannelType.ANNOUNCEMENT)

        delivered = await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}, "job.completed")

        assert delivered is True
        assert drain(first) == [{"job_id": "j1"}]
        assert drain(second) == [{"job_id": "j1"}]
        assert drain(announcements) == []

    @pytest.mark.asyncio
    async def test_no_sessions_returns_false(self, registry):
        assert await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}) is False

    @pytest.mark.asyncio
    async def test_same_user_in_another_tenant_is_not_reached(self, registry):
        other_tenant = await registry.connect("user-1", "tenant-2", ChannelType.PERSONAL)

        assert await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}) is False
        assert drain(other_tenant) == []

    @pytest.mark.asyncio
    async def test_one_failing_session_does_not_block_siblings(self, registry):
        full = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        healthy = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        for _ in range(4):
            full.push({"filler": True}, "filler")
        failures = {"event_type": "job.failed"}
        before = REGISTRY.get_sample_value("push_delivery_failures_total", failures) or 0

        delivered = await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}, "job.failed")

        assert delivered is True
        assert drain(healthy) == [{"job_id": "j1"}]
        assert REGISTRY.get_sample_value("push_delivery_failures_total", failures) == before + 1

    @pytest.mark.asyncio
    async def test_all_sessions_failing_returns_false(self, registry):
        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        for _ in range(4):
            session.push({}, "filler")

        assert await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}) is False

    @pytest.mark.asyncio
    async def test_payload_models_are_normalized(self, registry):
        class Progress(BaseModel):
            job_id: str
            percent: int

        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        await registry.send_to_user("user-1", "tenant-1", Progress(job_id="j1", percent=40), "job.progress")

        assert drain(session) == [{"job_id": "j1", "percent": 40}]

    @pytest.mark.asyncio
    async def test_unencodable_payload_is_reported_not_raised(self, registry):
        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        announcements = await registry.connect("user-1", "tenant-1", ChannelType.ANNOUNCEMENT)
        payload: dict = {"job_id": "j1"}
        payload["parent"] = payload

        assert await registry.send_to_user("user-1", "tenant-1", payload, "job.progress") is False
        assert await registry.broadcast_to_client("tenant-1", payload) == 0

        assert session.is_connected
        assert await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}, "job.progress") is True
        assert drain(session) == [{"job_id": "j1"}]
        assert drain(announcements) == []


class TestBroadcastToClient:
    @pytest.mark.asyncio
    async def test_reaches_every_announcement_session_of_the_tenant(self, registry):
        alice = await registry.connect("alice", "tenant-1", ChannelType.ANNOUNCEMENT)
        bob = await registry.connect("bob", "tenant-1", ChannelType.ANNOUNCEMENT)
        personal = await registry.connect("alice", "tenant-1", ChannelType.PERSONAL)

        sent = await registry.broadcast_to_client("tenant-1", {"message": "maintenance"}, "announcement")

        assert sent == 2
        assert drain(alice) == [{"message": "maintenance"}]
        assert drain(bob) == [{"message": "maintenance"}]
        assert drain(personal) == []

    @pytest.mark.asyncio
    async def test_tenant_match_is_exact(self, registry):
        similar = await registry.connect("carol", "tenant-10", ChannelType.ANNOUNCEMENT)

        sent = await registry.broadcast_to_client("tenant-1", {"message": "hello"})

        assert sent == 0
        assert drain(similar) == []

    @pytest.mark.asyncio
    async def test_closed_sessions_are_skipped(self, registry):
        session = await registry.connect("alice", "tenant-1", ChannelType.ANNOUNCEMENT)
        session.close()

        assert await registry.broadcast_to_client("tenant-1", {"message": "hello"}) == 0


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_removes_session_and_empty_group(self, registry):
        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        session.close()

        assert registry.get_total_active_connections() == 0
        assert registry._groups == {}

    @pytest.mark.asyncio
    async def test_disconnect_keeps_siblings(self, registry):
        first = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        second = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)

        first.close()

        assert registry.get_active_session_count("user-1", "tenant-1", ChannelType.PERSONAL) == 1
        assert await registry.send_to_user("user-1", "tenant-1", {"job_id": "j1"}) is True
        assert drain(second) == [{"job_id": "j1"}]

    @pytest.mark.asyncio
    async def test_active_gauge_follows_sessions(self, registry):
        session = await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL)
        assert REGISTRY.get_sample_value("sse_sessions_active") == 1

        session.close()

        assert REGISTRY.get_sample_value("sse_sessions_active") == 0

    @pytest.mark.asyncio
    async def test_cleanup_closes_everything(self, registry):
        sessions = [
            await registry.connect("user-1", "tenant-1", ChannelType.PERSONAL),
            await registry.connect("user-2", "tenant-1", ChannelType.ANNOUNCEMENT),
        ]

        await registry.cleanup()

        assert all(not session.is_connected for session in sessions)
        assert registry.get_total_active_connections() == 0


class TestNormalizePayload:
    def test_dataclass(self):
        @dataclass
        class Notice:
            title: str

        assert normalize_payload(Notice(title="hi")) == {"title": "hi"}

    def test_plain_values_pass_through(self):
        assert normalize_payload(["a", 1]) == ["a", 1]
        assert normalize_payload("text") == "text"
