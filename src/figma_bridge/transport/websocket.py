"""WebSocket transport for the relay.

Wraps a Starlette WebSocket so the ChannelRelay can treat it as a
RelayConnection. Text and binary frames are both accepted; binary frames
are handed to the relay as UTF-8 bytes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import AsyncIterator

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)

UPGRADE_HEADERS = [(b"access-control-allow-origin", b"*")]


class WebSocketRelayConnection:
    """Server-side end of one relay connection."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._connected = False
        self._send_lock = asyncio.Lock()
        self._connection_id = f"conn_{uuid.uuid4().hex[:12]}"

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def is_open(self) -> bool:
        """Check if the WebSocket is still connected."""
        return self._connected and self._websocket.client_state == WebSocketState.CONNECTED

    async def accept(self) -> None:
        """Accept the upgrade."""
        await self._websocket.accept(headers=UPGRADE_HEADERS)
        self._connected = True

    async def send_text(self, data: str) -> None:
        """Send one frame; silently skipped once the socket has closed."""
        async with self._send_lock:
            if self.is_open:
                await self._websocket.send_text(data)

    async def receive_frames(self) -> AsyncIterator[str | bytes]:
        """Yield raw inbound frames until the client disconnects."""
        try:
            while self._connected:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                if message.get("text") is not None:
                    yield message["text"]
                elif message.get("bytes") is not None:
                    yield message["bytes"]
        except WebSocketDisconnect:
            pass
        finally:
            self._connected = False

    async def close(self) -> None:
        """Close the WebSocket if it is still open."""
        self._connected = False
        if self._websocket.client_state == WebSocketState.CONNECTED:
            with contextlib.suppress(RuntimeError):
                await self._websocket.close()
