"""Transport adapters for the relay."""

from .websocket import WebSocketRelayConnection

__all__ = ["WebSocketRelayConnection"]
