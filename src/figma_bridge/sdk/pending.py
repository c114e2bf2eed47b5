"""Pending request table for the command gateway.

Maps correlation ids to the futures of callers waiting for a response.
Each entry leaves the table exactly once: on a matching response, on its
deadline, on connection loss, or when the caller cancels its await.

Deadlines are measured with an injectable clock. `expire()` sweeps every
overdue entry, which lets tests drive timeouts with a virtual clock instead
of real timers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import GatewayConnectionError, RequestTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0


@dataclass
class PendingRequest:
    """An in-flight request waiting for its correlated response."""

    request_id: str
    command: str
    future: asyncio.Future[Any]
    created_at: float
    deadline: float
    timer: asyncio.TimerHandle | None = None


class PendingRequestTable:
    """Correlation id -> waiting caller.

    Args:
        timeout: Seconds from registration until a request expires.
        clock: Monotonic time source; defaults to `time.monotonic`, which is
            also the event loop's clock.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout
        self._clock = clock
        self._pending: dict[str, PendingRequest] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def get(self, request_id: str) -> PendingRequest | None:
        return self._pending.get(request_id)

    def next_deadline(self) -> float | None:
        """Earliest deadline among pending requests, if any."""
        if not self._pending:
            return None
        return min(p.deadline for p in self._pending.values())

    def register(
        self,
        request_id: str,
        command: str,
        future: asyncio.Future[Any] | None = None,
        *,
        schedule: bool = True,
    ) -> PendingRequest:
        """Track a new request.

        Args:
            request_id: Correlation id; must not already be pending.
            command: Command name, kept for log and error messages.
            future: Future to settle; created on the running loop if omitted.
            schedule: Arm a loop timer that expires the request at its
                deadline. Pass False to rely on `expire()` alone.
        """
        if request_id in self._pending:
            raise ValueError(f"Request {request_id} is already pending")

        if future is None:
            future = asyncio.get_running_loop().create_future()

        now = self._clock()
        pending = PendingRequest(
            request_id=request_id,
            command=command,
            future=future,
            created_at=now,
            deadline=now + self._timeout,
        )
        self._pending[request_id] = pending

        if schedule:
            pending.timer = future.get_loop().call_later(
                self._timeout, self._expire_one, request_id
            )
        future.add_done_callback(lambda f: self._forget_cancelled(request_id, f))
        return pending

    def resolve(self, request_id: str, result: Any) -> bool:
        """Settle a request with its result.

        Returns:
            True if the request was pending, False otherwise.
        """
        pending = self._take(request_id)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_result(result)
        return True

    def reject(self, request_id: str, error: BaseException) -> bool:
        """Fail a request.

        Returns:
            True if the request was pending, False otherwise.
        """
        pending = self._take(request_id)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_exception(error)
        return True

    def expire(self, now: float | None = None) -> list[str]:
        """Fail every request whose deadline is at or before `now`.

        Returns:
            Ids of the expired requests.
        """
        now = self._clock() if now is None else now
        overdue = [p.request_id for p in self._pending.values() if p.deadline <= now]
        for request_id in overdue:
            self._expire_one(request_id)
        return overdue

    def reject_all(self, reason: str = "Connection closed") -> int:
        """Fail every pending request with a connection error.

        Returns:
            Number of requests rejected.
        """
        count = 0
        for request_id in list(self._pending):
            if self.reject(request_id, GatewayConnectionError(reason)):
                count += 1
        return count

    def _expire_one(self, request_id: str) -> None:
        pending = self._pending.get(request_id)
        if pending is None:
            return
        logger.error(
            f"Request {request_id} ({pending.command}) timed out after {self._timeout:g} seconds"
        )
        self.reject(request_id, RequestTimeoutError(request_id, pending.command, self._timeout))

    def _take(self, request_id: str) -> PendingRequest | None:
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()
        return pending

    def _forget_cancelled(self, request_id: str, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            pending = self._pending.get(request_id)
            if pending is not None and pending.future is future:
                self._take(request_id)
