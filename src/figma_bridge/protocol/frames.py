"""Relay wire frames.

Inbound frames (client -> relay) are untrusted and are validated at the
protocol boundary into a closed tagged variant, `JoinFrame | MessageFrame`.
Anything else (invalid JSON, a non-object, an unknown `type`) is a
ProtocolError and is dropped by the relay.

Outbound frames (relay -> client) share one envelope:

    {"type": "system" | "error" | "broadcast", "message": ..., "channel"?: ..., "sender"?: ...}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import ChannelValidationError, ProtocolError

WELCOME_MESSAGE = "Please join a channel to start chatting"
CHANNEL_REQUIRED_MESSAGE = "Channel name is required"
JOIN_FIRST_MESSAGE = "You must join the channel first"
MEMBER_JOINED_MESSAGE = "A new user has joined the channel"
MEMBER_LEFT_MESSAGE = "A user has left the channel"

EXPORT_SVG = "export_svg"
EXPORT_RESULT = "export_result"


class FrameType(str, Enum):
    """Outbound frame types."""

    SYSTEM = "system"
    ERROR = "error"
    BROADCAST = "broadcast"


class SenderLabel(str, Enum):
    """Sender label attached to broadcast frames, relative to the recipient."""

    YOU = "You"
    USER = "User"
    SERVER = "Server"


# =============================================================================
# Inbound frames
# =============================================================================


class JoinFrame(BaseModel):
    """Request to join a channel."""

    model_config = ConfigDict(extra="allow")

    type: Literal["join"]
    id: Any = None
    channel: Any = None
    message: Any = None


class MessageFrame(BaseModel):
    """Payload addressed to every member of a channel."""

    model_config = ConfigDict(extra="allow")

    type: Literal["message"]
    id: Any = None
    channel: Any = None
    message: Any = None


ClientFrame = Annotated[JoinFrame | MessageFrame, Field(discriminator="type")]

_client_frame_adapter: TypeAdapter[JoinFrame | MessageFrame] = TypeAdapter(ClientFrame)


def parse_client_frame(raw: str | bytes) -> JoinFrame | MessageFrame:
    """Parse and validate a raw inbound frame.

    Raises:
        ProtocolError: If the frame is not valid JSON or not a known frame type.
    """
    try:
        return _client_frame_adapter.validate_json(raw)
    except ValidationError as e:
        raise ProtocolError(f"Malformed frame: {e.errors()[0]['msg']}") from e


def require_channel(value: Any) -> str:
    """Return `value` if it is a usable channel name.

    Raises:
        ChannelValidationError: If the value is missing, empty or not a string.
    """
    if not isinstance(value, str) or not value:
        raise ChannelValidationError(CHANNEL_REQUIRED_MESSAGE)
    return value


class ExportSvgPayload(BaseModel):
    """Out-of-band export request carried inside a message frame."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: Literal["export_svg"]
    content: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    id: Any = None


def as_export_request(payload: Any) -> ExportSvgPayload | None:
    """Return the export request carried by `payload`, if it is one."""
    if not isinstance(payload, dict) or payload.get("type") != EXPORT_SVG:
        return None
    try:
        return ExportSvgPayload.model_validate(payload)
    except ValidationError:
        # Tagged as an export but with unusable fields; validated again by the exporter.
        return ExportSvgPayload(type=EXPORT_SVG, id=payload.get("id"))


# =============================================================================
# Outbound frames
# =============================================================================


@dataclass
class RelayFrame:
    """Relay protocol frame."""

    type: FrameType
    message: Any
    channel: str | None = None
    sender: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dictionary, omitting absent optional fields."""
        data: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.channel is not None:
            data["channel"] = self.channel
        if self.sender is not None:
            data["sender"] = self.sender
        return data

    def to_json(self) -> str:
        """Serialize to JSON."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, data: str | bytes) -> RelayFrame:
        """Deserialize from JSON.

        Raises:
            ProtocolError: If the data is not a relay envelope.
        """
        try:
            parsed = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ProtocolError("Frame is not a JSON object")
        try:
            frame_type = FrameType(parsed.get("type"))
        except ValueError as e:
            raise ProtocolError(f"Unknown frame type: {parsed.get('type')!r}") from e
        return cls(
            type=frame_type,
            message=parsed.get("message"),
            channel=parsed.get("channel"),
            sender=parsed.get("sender"),
        )

    @classmethod
    def system(cls, message: Any, channel: str | None = None) -> RelayFrame:
        """Create a system notification frame."""
        return cls(type=FrameType.SYSTEM, message=message, channel=channel)

    @classmethod
    def error(cls, message: str) -> RelayFrame:
        """Create an error frame."""
        return cls(type=FrameType.ERROR, message=message)

    @classmethod
    def broadcast(cls, message: Any, sender: SenderLabel, channel: str) -> RelayFrame:
        """Create a broadcast frame."""
        return cls(
            type=FrameType.BROADCAST,
            message=message,
            channel=channel,
            sender=sender.value,
        )
