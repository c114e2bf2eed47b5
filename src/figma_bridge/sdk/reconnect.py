"""Reconnection policy for the command gateway."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconnectPolicy:
    """Capped exponential backoff with an optional attempt bound.

    Attempt numbers start at 0 for the first retry after a disconnect.
    """

    initial_delay: float = 2.0
    backoff: float = 2.0
    max_delay: float = 30.0
    max_attempts: int | None = None  # None = retry forever
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Reconnect delays must be non-negative")
        if self.backoff < 1:
            raise ValueError("Reconnect backoff must be >= 1")
        if self.max_attempts is not None and self.max_attempts < 0:
            raise ValueError("max_attempts must be non-negative")

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number `attempt`."""
        if self.initial_delay == 0 or self.backoff == 1:
            return min(self.initial_delay, self.max_delay)
        try:
            delay = self.initial_delay * self.backoff**attempt
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    def allows(self, attempt: int) -> bool:
        """Whether retry number `attempt` may be made."""
        if not self.enabled:
            return False
        return self.max_attempts is None or attempt < self.max_attempts

    @classmethod
    def fixed(cls, delay: float = 2.0, max_attempts: int | None = None) -> ReconnectPolicy:
        """Constant delay between attempts."""
        return cls(initial_delay=delay, backoff=1.0, max_delay=delay, max_attempts=max_attempts)

    @classmethod
    def disabled(cls) -> ReconnectPolicy:
        """Never reconnect automatically."""
        return cls(enabled=False)
