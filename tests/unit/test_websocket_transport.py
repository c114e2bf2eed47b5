"""Unit tests for the relay's WebSocket transport.

Tests WebSocketRelayConnection against a mocked Starlette WebSocket:
- accept and connection state
- sending frames
- receiving text and binary frames until disconnect
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from figma_bridge.relay import RelayConnection
from figma_bridge.transport import WebSocketRelayConnection


def make_websocket(*messages: dict) -> MagicMock:
    mock_ws = MagicMock()
    mock_ws.client_state = WebSocketState.CONNECTED
    mock_ws.accept = AsyncMock()
    mock_ws.send_text = AsyncMock()
    mock_ws.close = AsyncMock()
    mock_ws.receive = AsyncMock(side_effect=list(messages))
    return mock_ws


class TestWebSocketRelayConnection:
    """Tests for WebSocketRelayConnection."""

    def test_initial_state(self) -> None:
        """Connection is not open until accepted."""
        connection = WebSocketRelayConnection(make_websocket())

        assert connection.is_open is False
        assert connection.connection_id.startswith("conn_")
        assert isinstance(connection, RelayConnection)

    @pytest.mark.asyncio
    async def test_accept_sends_cors_header(self) -> None:
        mock_ws = make_websocket()
        connection = WebSocketRelayConnection(mock_ws)

        await connection.accept()

        mock_ws.accept.assert_called_once_with(
            headers=[(b"access-control-allow-origin", b"*")]
        )
        assert connection.is_open is True

    @pytest.mark.asyncio
    async def test_send_text(self) -> None:
        mock_ws = make_websocket()
        connection = WebSocketRelayConnection(mock_ws)
        await connection.accept()

        await connection.send_text('{"type": "system"}')

        mock_ws.send_text.assert_called_once_with('{"type": "system"}')

    @pytest.mark.asyncio
    async def test_send_after_client_left_is_skipped(self) -> None:
        mock_ws = make_websocket()
        connection = WebSocketRelayConnection(mock_ws)
        await connection.accept()
        mock_ws.client_state = WebSocketState.DISCONNECTED

        await connection.send_text("{}")

        mock_ws.send_text.assert_not_called()
        assert connection.is_open is False

    @pytest.mark.asyncio
    async def test_receive_frames_until_disconnect(self) -> None:
        """Text and binary frames are yielded; disconnect ends the stream."""
        mock_ws = make_websocket(
            {"type": "websocket.receive", "text": '{"type": "join"}'},
            {"type": "websocket.receive", "bytes": b'{"type": "message"}'},
            {"type": "websocket.disconnect", "code": 1000},
        )
        connection = WebSocketRelayConnection(mock_ws)
        await connection.accept()

        frames = [frame async for frame in connection.receive_frames()]

        assert frames == ['{"type": "join"}', b'{"type": "message"}']
        assert connection.is_open is False

    @pytest.mark.asyncio
    async def test_receive_handles_disconnect_exception(self) -> None:
        mock_ws = make_websocket()
        mock_ws.receive = AsyncMock(side_effect=WebSocketDisconnect(code=1001))
        connection = WebSocketRelayConnection(mock_ws)
        await connection.accept()

        frames = [frame async for frame in connection.receive_frames()]

        assert frames == []

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        mock_ws = make_websocket()
        connection = WebSocketRelayConnection(mock_ws)
        await connection.accept()

        await connection.close()

        mock_ws.close.assert_called_once()
        assert connection.is_open is False

    @pytest.mark.asyncio
    async def test_close_when_already_disconnected(self) -> None:
        mock_ws = make_websocket()
        mock_ws.client_state = WebSocketState.DISCONNECTED
        connection = WebSocketRelayConnection(mock_ws)

        await connection.close()

        mock_ws.close.assert_not_called()
