"""figma-bridge SDK - client side of the relay.

CommandGateway connects to the relay, joins a channel and turns
fire-and-forget broadcasts into awaitable, correlated command calls.
"""

from .config import GatewayConfig
from .gateway import CommandGateway, GatewaySession, GatewayState, UpstreamConnection
from .pending import PendingRequest, PendingRequestTable
from .reconnect import ReconnectPolicy

__all__ = [
    # Gateway
    "CommandGateway",
    "GatewayConfig",
    "GatewaySession",
    "GatewayState",
    "UpstreamConnection",
    # Correlation
    "PendingRequest",
    "PendingRequestTable",
    # Reconnection
    "ReconnectPolicy",
]
