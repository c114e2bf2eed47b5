"""Unit tests for ReconnectPolicy."""

from __future__ import annotations

import pytest

from figma_bridge.sdk.reconnect import ReconnectPolicy


class TestReconnectPolicy:
    def test_default_backoff(self) -> None:
        """Delays double from 2s and stop growing at 30s."""
        policy = ReconnectPolicy()

        assert [policy.delay(n) for n in range(6)] == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

    @pytest.mark.parametrize("attempt", [1023, 1024, 5000, 10**9])
    def test_large_attempts_stay_capped(self, attempt: int) -> None:
        """Far past the point where the power overflows a float."""
        assert ReconnectPolicy().delay(attempt) == 30.0

    def test_zero_initial_delay(self) -> None:
        assert ReconnectPolicy(initial_delay=0.0).delay(5000) == 0.0

    def test_unbounded_by_default(self) -> None:
        assert ReconnectPolicy().allows(10_000)

    def test_max_attempts(self) -> None:
        policy = ReconnectPolicy(max_attempts=2)

        assert policy.allows(0)
        assert policy.allows(1)
        assert not policy.allows(2)

    def test_fixed(self) -> None:
        """A fixed policy waits the same time before every attempt."""
        policy = ReconnectPolicy.fixed(2.0)

        assert {policy.delay(n) for n in range(5)} == {2.0}

    def test_disabled(self) -> None:
        assert not ReconnectPolicy.disabled().allows(0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_delay": -1},
            {"max_delay": -1},
            {"backoff": 0.5},
            {"max_attempts": -1},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            ReconnectPolicy(**kwargs)
