"""Wire protocol shared by the relay and the gateway.

Key concepts:
- Gateway frames: driving client -> relay, carrying a correlation id
- Relay frames: relay -> clients (system, error, broadcast)
- Correlation: the target plugin answers with {id, result} or {id, error}
  inside a broadcast, which the gateway matches to the pending request
"""

from .commands import CommandName, CommandRequest, GatewayFrame, new_correlation_id
from .frames import (
    ExportSvgPayload,
    FrameType,
    JoinFrame,
    MessageFrame,
    RelayFrame,
    SenderLabel,
    as_export_request,
    parse_client_frame,
    require_channel,
)

__all__ = [
    # Gateway side
    "CommandName",
    "CommandRequest",
    "GatewayFrame",
    "new_correlation_id",
    # Relay side
    "ExportSvgPayload",
    "FrameType",
    "JoinFrame",
    "MessageFrame",
    "RelayFrame",
    "SenderLabel",
    "as_export_request",
    "parse_client_frame",
    "require_channel",
]
