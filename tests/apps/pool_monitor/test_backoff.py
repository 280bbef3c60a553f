"""Tests for the per-pool backoff tracker."""

import pytest

from whirlpool_monitor.apps.pool_monitor.backoff import BackoffTracker

_BASE = 1.0
_MAX = 60.0


class TestBackoffTracker:
    """Tests for BackoffTracker."""

    def test_unseen_pool_has_no_delay(self) -> None:
        """Return 0 for pools never recorded."""
        assert BackoffTracker(_BASE, _MAX).delay_for("SOL_USDC") == 0.0

    @pytest.mark.parametrize("failures", [1, 2, 3, 5, 6, 7, 10])
    def test_consecutive_rate_limits_double_until_cap(self, failures: int) -> None:
        """After N rate limits the delay is min(base * 2**N, max)."""
        tracker = BackoffTracker(_BASE, _MAX)
        for _ in range(failures):
            tracker.record_failure("SOL_USDC", rate_limited=True)
        assert tracker.delay_for("SOL_USDC") == min(_BASE * 2**failures, _MAX)

    def test_success_resets(self) -> None:
        """Reset to 0 after any success."""
        tracker = BackoffTracker(_BASE, _MAX)
        tracker.record_failure("SOL_USDC", rate_limited=True)
        tracker.record_failure("SOL_USDC", rate_limited=True)
        tracker.record_success("SOL_USDC")
        assert tracker.delay_for("SOL_USDC") == 0.0

    def test_other_failures_leave_delay_unchanged(self) -> None:
        """Do not escalate on non-rate-limit failures."""
        tracker = BackoffTracker(_BASE, _MAX)
        tracker.record_failure("SOL_USDC", rate_limited=True)
        returned = tracker.record_failure("SOL_USDC", rate_limited=False)
        assert returned == 2 * _BASE
        assert tracker.delay_for("SOL_USDC") == 2 * _BASE
        tracker.record_failure("JUP_SOL", rate_limited=False)
        assert tracker.delay_for("JUP_SOL") == 0.0

    def test_pools_are_independent(self) -> None:
        """Keep delays per pool."""
        tracker = BackoffTracker(_BASE, _MAX)
        tracker.record_failure("SOL_USDC", rate_limited=True)
        assert tracker.delay_for("JUP_SOL") == 0.0
        assert tracker.snapshot() == {"SOL_USDC": 2 * _BASE}

    def test_delay_never_exceeds_cap(self) -> None:
        """Clamp to max even when base is close to it."""
        tracker = BackoffTracker(40.0, _MAX)
        assert tracker.record_failure("SOL_USDC", rate_limited=True) == _MAX

    @pytest.mark.parametrize(("base", "maximum"), [(0.0, 1.0), (-1.0, 1.0), (2.0, 1.0)])
    def test_invalid_bounds_rejected(self, base: float, maximum: float) -> None:
        """Require 0 < base <= max."""
        with pytest.raises(ValueError, match="0 < base <= max"):
            BackoffTracker(base, maximum)
