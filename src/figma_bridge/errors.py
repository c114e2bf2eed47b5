"""Error taxonomy shared by the relay and the gateway.

Relay-side errors (validation, membership) are turned into `error` frames
addressed to the offending connection. Gateway-side errors reject the
caller's pending future or are raised directly from `invoke`/`join`.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all figma-bridge errors."""

    pass


class ChannelValidationError(BridgeError):
    """Channel name missing or not a non-empty string."""

    pass


class MembershipError(BridgeError):
    """Connection sent a message to a channel it has not joined."""

    pass


class ProtocolError(BridgeError):
    """Inbound frame could not be parsed into a known frame type."""

    pass


class ExportError(BridgeError):
    """Export side effect failed (bad content, bad name, or write failure)."""

    pass


class GatewayConnectionError(BridgeError, ConnectionError):
    """Upstream connection is not open, or closed while requests were pending."""

    pass


class ChannelRequiredError(BridgeError):
    """A command other than join was issued before joining a channel."""

    pass


class CommandValidationError(BridgeError, ValueError):
    """Command parameters cannot be encoded as a gateway frame."""

    pass


class RequestTimeoutError(BridgeError, TimeoutError):
    """No correlated response arrived before the request deadline."""

    def __init__(self, request_id: str, command: str, timeout: float):
        super().__init__(f"Request {request_id} ({command}) timed out after {timeout:g}s")
        self.request_id = request_id
        self.command = command
        self.timeout = timeout


class RemoteCommandError(BridgeError):
    """The target application answered a command with an error."""

    def __init__(self, request_id: str, message: str):
        super().__init__(message)
        self.request_id = request_id
