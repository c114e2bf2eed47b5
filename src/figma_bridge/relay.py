"""Channel relay.

Owns channel membership for one relay instance and routes frames:

- connect: greet the connection; it belongs to no channel yet
- join: add the connection to a channel (membership is additive)
- message: broadcast to every member of the channel, labelled "You" for
  the sender and "User" for everyone else; export requests are handled
  out of band and answered to the sender only
- disconnect: leave every joined channel and tell the remaining members

The relay is transport-agnostic. Anything with `connection_id`, `is_open`
and `send_text()` can be a member (see transport/websocket.py).
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from .errors import ChannelValidationError, MembershipError, ProtocolError
from .export import ExportResult, SvgExporter
from .protocol.frames import (
    JOIN_FIRST_MESSAGE,
    MEMBER_JOINED_MESSAGE,
    MEMBER_LEFT_MESSAGE,
    WELCOME_MESSAGE,
    ExportSvgPayload,
    JoinFrame,
    MessageFrame,
    RelayFrame,
    SenderLabel,
    as_export_request,
    parse_client_frame,
    require_channel,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class RelayConnection(Protocol):
    """One relay endpoint."""

    @property
    def connection_id(self) -> str:
        """Opaque identity used in logs."""
        ...

    @property
    def is_open(self) -> bool:
        """Whether frames can still be delivered."""
        ...

    async def send_text(self, data: str) -> None:
        """Deliver one serialized frame."""
        ...


class ChannelRelay:
    """Channel broker for a single relay instance.

    All state is owned by the instance, so several relays can run side by
    side (one per app, one per test).

    Args:
        exporter: Handles `export_svg` payloads. Without one, export requests
            are answered with a failed `export_result`.
        collect_empty_channels: Drop a channel once its last member leaves.
    """

    def __init__(
        self,
        exporter: SvgExporter | None = None,
        collect_empty_channels: bool = True,
    ) -> None:
        self._exporter = exporter
        self._collect_empty_channels = collect_empty_channels
        self._channels: dict[str, set[RelayConnection]] = {}
        self._connections: set[RelayConnection] = set()

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def channel_names(self) -> list[str]:
        """Names of all live channels, sorted."""
        return sorted(self._channels)

    @property
    def connection_count(self) -> int:
        """Number of connected endpoints."""
        return len(self._connections)

    def members(self, channel: str) -> frozenset[RelayConnection]:
        """Current members of `channel` (empty if the channel does not exist)."""
        return frozenset(self._channels.get(channel, ()))

    def channels_of(self, conn: RelayConnection) -> set[str]:
        """Names of the channels `conn` is a member of."""
        return {name for name, members in self._channels.items() if conn in members}

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, conn: RelayConnection) -> None:
        """Register a new connection and send the welcome frame."""
        self._connections.add(conn)
        logger.info(f"New client connected: {conn.connection_id}")
        await self._send(conn, RelayFrame.system(WELCOME_MESSAGE))

    async def disconnect(self, conn: RelayConnection) -> None:
        """Remove `conn` from every channel and notify the remaining members.

        Only the first call for a connection has an effect.
        """
        if conn not in self._connections:
            return
        self._connections.discard(conn)
        logger.info(f"Client disconnected: {conn.connection_id}")

        for name in sorted(self.channels_of(conn)):
            members = self._channels[name]
            members.discard(conn)

            if not members and self._collect_empty_channels:
                del self._channels[name]
                logger.debug(f"Channel {name!r} is empty, removed")
                continue

            notice = RelayFrame.system(MEMBER_LEFT_MESSAGE, channel=name)
            for member in list(members):
                await self._send(member, notice)

    # =========================================================================
    # Frame handling
    # =========================================================================

    async def handle_frame(self, conn: RelayConnection, raw: str | bytes) -> None:
        """Parse one inbound frame and apply the channel protocol.

        Malformed frames are logged and dropped without a reply. Validation
        and membership failures are answered with an error frame addressed
        to `conn` only. Frames from connections that are not registered
        (never connected, or already disconnected) are dropped.
        """
        if conn not in self._connections:
            logger.warning(f"Dropping frame from unregistered connection {conn.connection_id}")
            return

        try:
            frame = parse_client_frame(raw)
        except ProtocolError as e:
            logger.warning(f"Dropping frame from {conn.connection_id}: {e}")
            return

        logger.debug(f"Received {frame.type} frame from {conn.connection_id}")

        try:
            if isinstance(frame, JoinFrame):
                await self._handle_join(conn, frame)
            else:
                await self._handle_message(conn, frame)
        except (ChannelValidationError, MembershipError) as e:
            logger.info(f"Rejected {frame.type} frame from {conn.connection_id}: {e}")
            await self._send(conn, RelayFrame.error(str(e)))

    async def _handle_join(self, conn: RelayConnection, frame: JoinFrame) -> None:
        name = require_channel(frame.channel)

        if name not in self._channels:
            self._channels[name] = set()
            logger.info(f"Created channel {name!r}")
        members = self._channels[name]
        members.add(conn)
        logger.info(f"{conn.connection_id} joined channel {name!r}")

        await self._send(conn, RelayFrame.system(f"Joined channel: {name}", channel=name))

        ack: dict[str, object] = {"result": f"Connected to channel: {name}"}
        if frame.id is not None:
            ack = {"id": frame.id, **ack}
        await self._send(conn, RelayFrame.system(ack, channel=name))

        notice = RelayFrame.system(MEMBER_JOINED_MESSAGE, channel=name)
        for member in list(members):
            if member is not conn:
                await self._send(member, notice)

    async def _handle_message(self, conn: RelayConnection, frame: MessageFrame) -> None:
        name = require_channel(frame.channel)

        members = self._channels.get(name)
        if not members or conn not in members:
            raise MembershipError(JOIN_FIRST_MESSAGE)

        export_request = as_export_request(frame.message)
        if export_request is not None:
            await self._handle_export(conn, name, export_request)
            return

        for member in list(members):
            sender = SenderLabel.YOU if member is conn else SenderLabel.USER
            await self._send(member, RelayFrame.broadcast(frame.message, sender, name))

    async def _handle_export(
        self,
        conn: RelayConnection,
        channel: str,
        request: ExportSvgPayload,
    ) -> None:
        logger.info(f"Received export_svg message from {conn.connection_id}")

        if self._exporter is None:
            result = ExportResult(
                success=False,
                error="Export is not enabled on this relay",
                request_id=request.id,
            )
        else:
            result = await self._exporter.export(request)

        await self._send(
            conn,
            RelayFrame.broadcast(result.to_message(), SenderLabel.SERVER, channel),
        )

    async def _send(self, conn: RelayConnection, frame: RelayFrame) -> None:
        """Deliver a frame, isolating failures to the one connection."""
        if not conn.is_open:
            return
        try:
            await conn.send_text(frame.to_json())
        except Exception as e:
            logger.warning(f"Failed to send {frame.type.value} frame to {conn.connection_id}: {e}")

    def close(self) -> None:
        """Release the export worker pool."""
        if self._exporter is not None:
            self._exporter.shutdown()
