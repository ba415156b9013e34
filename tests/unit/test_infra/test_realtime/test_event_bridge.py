"""Unit tests for EventBridge routing."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from property_service.infra.realtime import (
    ChannelType,
    EventBridge,
    LocalEventBus,
    RealtimeEvent,
    SessionRegistry,
    SSETransport,
)


@pytest.fixture
def bus() -> LocalEventBus:
    return LocalEventBus()


@pytest.fixture
def sessions() -> AsyncMock:
    sessions = AsyncMock(spec=SessionRegistry)
    sessions.send_to_user.return_value = True
    sessions.broadcast_to_client.return_value = 0
    return sessions


class TestRouting:
    @pytest.mark.asyncio
    async def test_user_event_goes_to_personal_sessions(self, bus, sessions):
        bridge = EventBridge(bus, sessions)
        bridge.start()
        event = RealtimeEvent(
            event_type="job.completed",
            tenant_id="tenant-1",
            user_id="user-1",
            payload={"job_id": "j1", "job_type": "csv_import"},
        )

        await bus.publish(event)

        sessions.send_to_user.assert_awaited_once()
        user_id, tenant_id, data, event_type = sessions.send_to_user.await_args.args
        assert (user_id, tenant_id, event_type) == ("user-1", "tenant-1", "job.completed")
        assert data == {
            "id": event.id,
            "event_type": "job.completed",
            "timestamp": event.timestamp.isoformat(),
            "job_id": "j1",
            "job_type": "csv_import",
        }
        sessions.broadcast_to_client.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_without_user_is_broadcast(self, bus, sessions):
        bridge = EventBridge(bus, sessions)
        bridge.start()

        await bus.publish(RealtimeEvent(event_type="announcement", tenant_id="tenant-1", payload={"message": "hi"}))

        sessions.broadcast_to_client.assert_awaited_once()
        tenant_id, data, event_type = sessions.broadcast_to_client.await_args.args
        assert tenant_id == "tenant-1"
        assert data["message"] == "hi"
        assert event_type == "announcement"
        sessions.send_to_user.assert_not_awaited()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, bus, sessions):
        bridge = EventBridge(bus, sessions)
        bridge.start()
        bridge.start()

        await bus.publish(RealtimeEvent(event_type="job.completed", tenant_id="t", user_id="u"))

        assert bridge.is_running
        sessions.send_to_user.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stopped_bridge_forwards_nothing(self, bus, sessions):
        bridge = EventBridge(bus, sessions)
        bridge.start()
        bridge.stop()

        await bus.publish(RealtimeEvent(event_type="job.completed", tenant_id="t", user_id="u"))

        assert not bridge.is_running
        sessions.send_to_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_job_event_reaches_connected_client(bus):
    sessions = SessionRegistry(SSETransport(keepalive_interval=0.05))
    EventBridge(bus, sessions).start()
    session = await sessions.connect("user-1", "tenant-1", ChannelType.PERSONAL)

    await bus.publish(
        RealtimeEvent(
            event_type="job.completed",
            tenant_id="tenant-1",
            user_id="user-1",
            payload={"job_id": "j1"},
        )
    )

    frame = session._queue.get_nowait()
    assert "event: job.completed\n" in frame
    assert '"job_id":"j1"' in frame
