"""HTTP and WebSocket routes for the relay server."""

from .health import health_routes
from .relay import relay_routes

__all__ = ["health_routes", "relay_routes"]
