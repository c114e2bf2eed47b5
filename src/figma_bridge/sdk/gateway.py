"""Command gateway: correlated request/response over the channel relay.

The relay only broadcasts frames. The gateway turns that into awaitable
calls:

- `invoke()` tags each command with a fresh correlation id, registers it in
  the PendingRequestTable and sends it to the joined channel
- the reader task matches inbound `{id, result}` / `{id, error}` payloads to
  the waiting caller; everything else is an unsolicited notification
- a closed socket fails every pending call and starts reconnecting
  according to the ReconnectPolicy

State machine:

    DISCONNECTED -> CONNECTING -> CONNECTED (no channel) -> CONNECTED (channel)
         ^                                   |
         +------ RECONNECTING <--- socket closed

`close()` moves to CLOSED from any state and stops reconnecting.
Reconnecting does not re-join the previous channel or replay requests.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from ..errors import (
    ChannelRequiredError,
    CommandValidationError,
    GatewayConnectionError,
    ProtocolError,
    RemoteCommandError,
)
from ..protocol.commands import CommandName, GatewayFrame
from ..protocol.frames import FrameType, RelayFrame, require_channel
from .config import GatewayConfig
from .pending import PendingRequestTable

logger = logging.getLogger(__name__)


class GatewayState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class UpstreamConnection(Protocol):
    """The subset of a websockets client connection the gateway uses."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


Connector = Callable[[str], Awaitable[UpstreamConnection]]


@dataclass
class GatewaySession:
    """The live upstream connection and the channel joined on it."""

    websocket: UpstreamConnection | None = None
    channel: str | None = None


class CommandGateway:
    """Client-side gateway to the Figma plugin through the relay.

    Usage:
        async with CommandGateway(GatewayConfig(server="localhost")) as gateway:
            await gateway.join("room1")
            info = await gateway.invoke(CommandName.GET_DOCUMENT_INFO)

    Args:
        config: Target relay, timeout and reconnect policy.
        connector: Opens the upstream connection for a URL. Defaults to
            `websockets.connect`; tests inject fakes here.
        clock: Time source for request deadlines.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        connector: Connector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or GatewayConfig()
        self._connector = connector or self._open_websocket
        self._pending = PendingRequestTable(timeout=self.config.timeout, clock=clock)
        self._session = GatewaySession()
        self._state = GatewayState.DISCONNECTED
        self._lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> GatewayState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the upstream connection is open."""
        return self._state == GatewayState.CONNECTED and self._session.websocket is not None

    @property
    def channel(self) -> str | None:
        """Channel joined on the current connection."""
        return self._session.channel

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def _open_websocket(self, url: str) -> UpstreamConnection:
        return await websockets.connect(
            url,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
        )

    async def connect(self) -> None:
        """Open the upstream connection; no-op if already connected.

        Raises:
            GatewayConnectionError: If the relay cannot be reached.
        """
        async with self._lock:
            if self.is_connected:
                logger.info("Already connected to Figma")
                return

            url = self.config.url
            self._state = GatewayState.CONNECTING
            logger.info(f"Connecting to Figma socket server at {url}...")

            try:
                websocket = await self._connector(url)
            except Exception as e:
                self._state = GatewayState.DISCONNECTED
                raise GatewayConnectionError(f"Failed to connect to {url}: {e}") from e

            # A new connection never inherits the previous channel
            self._session = GatewaySession(websocket=websocket)
            self._state = GatewayState.CONNECTED
            self._reader_task = asyncio.create_task(self._read_loop(websocket))
            logger.info("Connected to Figma socket server")

    async def close(self) -> None:
        """Close the connection and stop reconnecting.

        Pending requests fail with GatewayConnectionError.
        """
        self._state = GatewayState.CLOSED

        for task in (self._reconnect_task, self._connect_task):
            if task and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reconnect_task = None
        self._connect_task = None

        websocket = self._session.websocket
        self._session = GatewaySession()

        if self._reader_task:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        self._pending.reject_all("Gateway closed")

        if websocket is not None:
            with contextlib.suppress(ConnectionClosed, OSError):
                await websocket.close()
        logger.info("Gateway closed")

    async def __aenter__(self) -> CommandGateway:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _connect_soon(self) -> None:
        """Start a background connect unless one is already under way."""
        if self._state in (
            GatewayState.CLOSED,
            GatewayState.CONNECTING,
            GatewayState.RECONNECTING,
        ):
            return
        if self._connect_task and not self._connect_task.done():
            return
        self._connect_task = asyncio.create_task(self._background_connect())

    async def _background_connect(self) -> None:
        try:
            await self.connect()
        except GatewayConnectionError as e:
            logger.warning(f"Could not connect to Figma: {e}")
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._state == GatewayState.CLOSED or not self.config.reconnect.enabled:
            return
        if self._reconnect_task and not self._reconnect_task.done():
            return
        self._state = GatewayState.RECONNECTING
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        policy = self.config.reconnect
        attempt = 0

        try:
            while policy.allows(attempt):
                delay = policy.delay(attempt)
                logger.info(f"Attempting to reconnect in {delay:g} seconds...")
                await asyncio.sleep(delay)

                if self._state == GatewayState.CLOSED:
                    return
                try:
                    await self.connect()
                    return
                except GatewayConnectionError as e:
                    attempt += 1
                    self._state = GatewayState.RECONNECTING
                    logger.warning(f"Reconnect attempt {attempt} failed: {e}")

            logger.error(f"Giving up reconnecting after {attempt} attempts")
        except Exception:
            logger.exception(f"Reconnect loop failed after {attempt} attempts")
        finally:
            # Never leave the gateway stuck where _connect_soon refuses to run
            if self._state == GatewayState.RECONNECTING:
                self._state = GatewayState.DISCONNECTED

    async def _read_loop(self, websocket: UpstreamConnection) -> None:
        try:
            async for data in websocket:
                self._handle_frame(data)
        except ConnectionClosed as e:
            logger.warning(f"Socket error: {e}")
        except Exception:
            logger.exception("Gateway read loop error")
        finally:
            self._handle_close(websocket)

    def _handle_close(self, websocket: UpstreamConnection) -> None:
        if self._session.websocket is not websocket:
            return

        logger.info("Disconnected from Figma socket server")
        self._session = GatewaySession()
        rejected = self._pending.reject_all("Connection closed")
        if rejected:
            logger.warning(f"Rejected {rejected} pending request(s) on disconnect")

        if self._state == GatewayState.CLOSED:
            return
        self._state = GatewayState.DISCONNECTED
        self._schedule_reconnect()

    # =========================================================================
    # Requests
    # =========================================================================

    async def join(self, channel: str) -> None:
        """Join `channel` on the relay.

        Raises:
            GatewayConnectionError: If not connected (no reconnect is started).
            ChannelValidationError: If `channel` is empty or not a string.
        """
        if not self.is_connected:
            raise GatewayConnectionError("Not connected to Figma")
        require_channel(channel)

        try:
            await self.invoke(CommandName.JOIN, {"channel": channel})
        except Exception as e:
            logger.error(f"Failed to join channel: {e}")
            raise

        self._session.channel = channel
        logger.info(f"Joined channel: {channel}")

    async def invoke(
        self,
        command: str | CommandName,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a command to the plugin and wait for its result.

        Preconditions are checked before the first suspension point, so a
        failing call never blocks.

        Raises:
            GatewayConnectionError: Not connected (a background connect is
                started; the caller must retry), or the connection closed
                before a response arrived.
            ChannelRequiredError: No channel joined and `command` is not join.
            ChannelValidationError: join without a usable channel name.
            CommandValidationError: `params` cannot be sent as a command.
            RequestTimeoutError: No response before the deadline.
            RemoteCommandError: The plugin answered with an error.
        """
        name = command.value if isinstance(command, CommandName) else command
        websocket = self._session.websocket

        if not self.is_connected or websocket is None:
            self._connect_soon()
            raise GatewayConnectionError("Not connected to Figma. Attempting to connect...")

        if name != CommandName.JOIN.value and self._session.channel is None:
            raise ChannelRequiredError("Must join a channel before sending commands")

        if params is not None and not isinstance(params, dict):
            raise CommandValidationError(f"Parameters for {name} must be an object")
        if name == CommandName.JOIN.value:
            require_channel((params or {}).get("channel"))
        try:
            frame = GatewayFrame.create(name, params, channel=self._session.channel)
        except ValidationError as e:
            raise CommandValidationError(f"Invalid {name} request: {e.errors()[0]['msg']}") from e

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending.register(frame.id, name, future)

        logger.info(f"Sending command to Figma: {name}")
        payload = frame.to_json()
        logger.debug(f"Request details: {payload}")

        try:
            await websocket.send(payload)
        except (ConnectionClosed, OSError) as e:
            self._pending.reject(frame.id, GatewayConnectionError(f"Failed to send {name}: {e}"))

        return await future

    def _handle_frame(self, data: str | bytes) -> None:
        """Route one inbound relay frame to its pending caller, if any."""
        try:
            frame = RelayFrame.from_json(data)
        except ProtocolError as e:
            logger.error(f"Error parsing message: {e}")
            return

        response = frame.message
        logger.debug(f"Received message: {json.dumps(response)}")

        request_id = response.get("id") if isinstance(response, dict) else None
        if not isinstance(request_id, str) or request_id not in self._pending:
            if frame.type == FrameType.ERROR:
                logger.warning(f"Relay error: {response}")
            else:
                logger.info(f"Received broadcast message: {json.dumps(response)}")
            return

        if response.get("error") is not None:
            logger.error(f"Error from Figma: {response['error']}")
            self._pending.reject(request_id, RemoteCommandError(request_id, str(response["error"])))
        elif "result" in response:
            self._pending.resolve(request_id, response["result"])
        else:
            # Our own request echoed back by the relay broadcast
            logger.debug(f"Ignoring echo of request {request_id}")
