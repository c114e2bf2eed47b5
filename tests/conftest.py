"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosedOK


# =============================================================================
# Relay side
# =============================================================================


class FakeConnection:
    """In-memory RelayConnection that records every frame it is sent."""

    def __init__(self, name: str | None = None, fail_sends: bool = False):
        self.connection_id = name or f"fake_{uuid.uuid4().hex[:8]}"
        self.is_open = True
        self.fail_sends = fail_sends
        self.sent: list[dict[str, Any]] = []

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise OSError("broken pipe")
        self.sent.append(json.loads(data))

    def frames(self, frame_type: str | None = None) -> list[dict[str, Any]]:
        """Sent frames, optionally filtered by type."""
        if frame_type is None:
            return list(self.sent)
        return [f for f in self.sent if f["type"] == frame_type]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""

    def factory(name: str | None = None, **kwargs: Any) -> FakeConnection:
        return FakeConnection(name, **kwargs)

    return factory


# =============================================================================
# Gateway side
# =============================================================================


class FakeUpstream:
    """In-memory stand-in for a websockets client connection.

    Frames pushed with `feed()` are yielded by async iteration; `drop()`
    ends the iteration the way a closed socket would.
    """

    _CLOSE = object()

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True
        self._inbound.put_nowait(self._CLOSE)

    def feed(self, frame: dict[str, Any]) -> None:
        self._inbound.put_nowait(json.dumps(frame))

    def drop(self) -> None:
        """Simulate the relay closing the socket."""
        self.closed = True
        self._inbound.put_nowait(self._CLOSE)

    def __aiter__(self) -> FakeUpstream:
        return self

    async def __anext__(self) -> str:
        item = await self._inbound.get()
        if item is self._CLOSE:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Connector that hands out FakeUpstream instances and records URLs."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.urls: list[str] = []
        self.upstreams: list[FakeUpstream] = []

    async def __call__(self, url: str) -> FakeUpstream:
        self.urls.append(url)
        if self.fail:
            raise OSError("connection refused")
        upstream = FakeUpstream()
        self.upstreams.append(upstream)
        return upstream

    @property
    def latest(self) -> FakeUpstream:
        return self.upstreams[-1]


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


async def settle() -> None:
    """Let scheduled tasks (reader loop, callbacks) run."""
    for _ in range(5):
        await asyncio.sleep(0)
