"""figma-bridge.

A WebSocket channel relay between an automation client and the Figma plugin,
plus the client-side command gateway that turns relay broadcasts into
correlated request/response calls.
"""

from .errors import (
    BridgeError,
    ChannelRequiredError,
    ChannelValidationError,
    CommandValidationError,
    ExportError,
    GatewayConnectionError,
    MembershipError,
    ProtocolError,
    RemoteCommandError,
    RequestTimeoutError,
)
from .relay import ChannelRelay, RelayConnection

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Relay
    "ChannelRelay",
    "RelayConnection",
    # Errors
    "BridgeError",
    "ChannelRequiredError",
    "ChannelValidationError",
    "CommandValidationError",
    "ExportError",
    "GatewayConnectionError",
    "MembershipError",
    "ProtocolError",
    "RemoteCommandError",
    "RequestTimeoutError",
]
