"""Health check endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    relay = request.app.state.relay
    return JSONResponse(
        {
            "status": "ok",
            "channels": len(relay.channel_names),
            "connections": relay.connection_count,
        }
    )


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]
