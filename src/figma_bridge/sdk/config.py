"""Configuration for the command gateway.

This is the CLIENT-side config. Relay settings live in figma_bridge/config.py.

Environment:

    FIGMA_BRIDGE_SERVER   relay host to connect to (default localhost)
    FIGMA_BRIDGE_PORT     relay port, used for localhost only (default 3055)
    FIGMA_BRIDGE_TIMEOUT  per-request timeout in seconds (default 30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from ..config import DEFAULT_PORT, env_float, env_int
from .pending import DEFAULT_REQUEST_TIMEOUT
from .reconnect import ReconnectPolicy

DEFAULT_SERVER = "localhost"


@dataclass
class GatewayConfig:
    """Command gateway settings.

    The target host selects the scheme by convention: "localhost" uses
    plaintext ws:// on `port`, any other host uses wss:// on the scheme's
    default port.
    """

    server: str = DEFAULT_SERVER
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)

    # Keep-alive for the websockets client
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.timeout:g}")

    @property
    def url(self) -> str:
        """WebSocket URL of the relay."""
        if self.server == DEFAULT_SERVER:
            return f"ws://{self.server}:{self.port}"
        return f"wss://{self.server}"

    @classmethod
    def from_env(cls, server: str | None = None) -> GatewayConfig:
        """Build from the environment; an explicit `server` wins over it."""
        return cls(
            server=server or os.environ.get("FIGMA_BRIDGE_SERVER") or DEFAULT_SERVER,
            port=env_int("FIGMA_BRIDGE_PORT", DEFAULT_PORT),
            timeout=env_float("FIGMA_BRIDGE_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        )
