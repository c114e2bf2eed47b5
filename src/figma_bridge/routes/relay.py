"""Relay endpoints.

One path serves both protocols:
- WebSocket upgrade on "/" joins the ChannelRelay owned by the app
- plain HTTP on "/" answers CORS preflight and reports that the relay runs
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from ..relay import ChannelRelay
from ..transport.websocket import WebSocketRelayConnection

logger = logging.getLogger(__name__)

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


async def relay_websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for relay clients.

    URL: /

    Protocol:
    1. Server sends a system frame asking the client to join a channel
    2. Client sends {"type": "join", "channel": ..., "id": ...}
    3. Client sends {"type": "message", "channel": ..., "message": ...};
       the relay broadcasts it to every member of the channel
    4. On disconnect the remaining members are told the client left
    """
    relay: ChannelRelay = websocket.app.state.relay
    connection = WebSocketRelayConnection(websocket)
    await connection.accept()

    try:
        await relay.connect(connection)
        async for raw in connection.receive_frames():
            await relay.handle_frame(connection, raw)
    except Exception as e:
        logger.exception(f"Relay connection error for {connection.connection_id}: {e}")
    finally:
        await relay.disconnect(connection)
        await connection.close()


async def relay_http_endpoint(request: Request) -> Response:
    """Plain HTTP requests on the relay path."""
    if request.method == "OPTIONS":
        return Response(headers=CORS_PREFLIGHT_HEADERS)
    return PlainTextResponse(
        "WebSocket server running",
        headers={"Access-Control-Allow-Origin": "*"},
    )


relay_routes = [
    Route("/", relay_http_endpoint, methods=["GET", "POST", "OPTIONS"]),
    WebSocketRoute("/", relay_websocket_endpoint),
]
