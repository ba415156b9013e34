"""Server-Sent Events push sessions.

A ``PushSession`` buffers encoded SSE frames in a bounded queue; the HTTP
layer drains them through ``stream()`` into a ``StreamingResponse``.

Frame format:
    id: 3f1c...
    event: job.completed
    data: {"job_id": "...", "job_type": "csv_import"}

Idle streams receive ``: keep-alive`` comments so proxies keep the connection open.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
import contextlib
from datetime import UTC, datetime
import json
import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from property_service.core.exceptions import SessionClosedError
from property_service.infra.realtime.events import ChannelType

if TYPE_CHECKING:
    from fastapi import Request

logger = logging.getLogger(__name__)

DisconnectHook = Callable[["PushSession"], None]

CONNECTED_COMMENT = ": connected\n\n"
KEEPALIVE_COMMENT = ": keep-alive\n\n"


def encode_frame(event_id: str, event_type: str, data: Any) -> str:
    """Encode one SSE frame; multi-line data becomes several ``data:`` lines."""
    body = json.dumps(data, default=str, separators=(",", ":"))
    data_lines = "\n".join(f"data: {line}" for line in body.splitlines() or [""])
    return f"id: {event_id}\nevent: {event_type}\n{data_lines}\n\n"


class PushSession:
    """One open push stream of a user within a tenant."""

    def __init__(
        self,
        user_id: str,
        tenant_id: str,
        channel_type: ChannelType,
        *,
        request: Request | None = None,
        queue_maxsize: int = 256,
        keepalive_interval: float = 15.0,
    ) -> None:
        self.session_id = uuid4().hex
        self.user_id = user_id
        self.tenant_id = tenant_id
        self.channel_type = ChannelType(channel_type)
        self.connected_at = datetime.now(UTC)
        self._request = request
        self._keepalive_interval = keepalive_interval
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_maxsize)
        self._hooks: list[DisconnectHook] = []
        self._connected = True

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def pending(self) -> int:
        """Frames buffered and not yet streamed."""
        return self._queue.qsize()

    def on_disconnected(self, hook: DisconnectHook) -> None:
        self._hooks.append(hook)

    def push(self, payload: Any, event_type: str) -> str:
        """Queue one event for the client.

        Returns:
            The SSE event id.

        Raises:
            SessionClosedError: If the session is closed.
            asyncio.QueueFull: If the client is not draining its stream.
            ValueError: If the payload cannot be encoded (e.g. it is circular).
        """
        if not self._connected:
            raise SessionClosedError(self.session_id)

        event_id = uuid4().hex
        self._queue.put_nowait(encode_frame(event_id, event_type, payload))
        return event_id

    async def stream(self) -> AsyncIterator[str]:
        """Yield SSE frames until the client disconnects or the session closes."""
        try:
            yield CONNECTED_COMMENT
            while self._connected:
                if self._request is not None and await self._request.is_disconnected():
                    break
                try:
                    frame = await asyncio.wait_for(self._queue.get(), timeout=self._keepalive_interval)
                except TimeoutError:
                    yield KEEPALIVE_COMMENT
                    continue
                yield frame
        finally:
            self.close()

    def close(self) -> None:
        """Mark the session closed and run the disconnect hooks once."""
        if not self._connected:
            return
        self._connected = False

        hooks, self._hooks = self._hooks, []
        for hook in hooks:
            try:
                hook(self)
            except Exception as e:
                logger.exception(
                    "Disconnect hook failed",
                    extra={"session_id": self.session_id, "error": str(e)},
                )

        # Wake a stream waiting on an empty queue
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(KEEPALIVE_COMMENT)

    def __repr__(self) -> str:
        return (
            f"PushSession(session_id={self.session_id!r}, user_id={self.user_id!r}, "
            f"tenant_id={self.tenant_id!r}, channel_type={self.channel_type.value!r}, "
            f"connected={self._connected})"
        )


class SSETransport:
    """Creates push sessions with the configured buffering and keep-alive."""

    def __init__(self, *, queue_maxsize: int = 256, keepalive_interval: float = 15.0) -> None:
        self._queue_maxsize = queue_maxsize
        self._keepalive_interval = keepalive_interval

    async def create_session(
        self,
        user_id: str,
        tenant_id: str,
        channel_type: ChannelType,
        request: Request | None = None,
    ) -> PushSession:
        return PushSession(
            user_id,
            tenant_id,
            channel_type,
            request=request,
            queue_maxsize=self._queue_maxsize,
            keepalive_interval=self._keepalive_interval,
        )
