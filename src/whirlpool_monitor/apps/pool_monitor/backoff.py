"""Per-pool exponential backoff for rate-limited fetches.

Track one delay per pool id. A rate-limit doubles the delay (starting from
the base) up to a cap; a success resets it to zero; any other failure leaves
it unchanged. The collector sleeps for the stored delay before the pool's
next fetch.
"""

import logging

logger = logging.getLogger(__name__)


class BackoffTracker:
    """In-memory backoff delays keyed by pool id.

    Each coroutine only touches its own pool's key and never awaits between
    reading and writing it, so no locking is needed on a single event loop.

    Args:
        base_seconds: First escalation step, in seconds.
        max_seconds: Upper bound on any delay, in seconds.

    Raises:
        ValueError: Unless ``0 < base_seconds <= max_seconds``.

    """

    def __init__(self, base_seconds: float = 1.0, max_seconds: float = 60.0) -> None:
        """Initialize the tracker with empty state.

        Args:
            base_seconds: First escalation step, in seconds.
            max_seconds: Upper bound on any delay, in seconds.

        """
        if not 0 < base_seconds <= max_seconds:
            msg = f"Backoff bounds must satisfy 0 < base <= max, got base={base_seconds} max={max_seconds}"
            raise ValueError(msg)
        self._base = base_seconds
        self._max = max_seconds
        self._delays: dict[str, float] = {}

    @property
    def base_seconds(self) -> float:
        """Return the first escalation step."""
        return self._base

    @property
    def max_seconds(self) -> float:
        """Return the delay cap."""
        return self._max

    def delay_for(self, pool_id: str) -> float:
        """Return the current delay for a pool, 0 for unseen pools."""
        return self._delays.get(pool_id, 0.0)

    def record_success(self, pool_id: str) -> None:
        """Reset the pool's delay after a successful fetch."""
        self._delays[pool_id] = 0.0

    def record_failure(self, pool_id: str, *, rate_limited: bool) -> float:
        """Record a failed fetch and return the pool's resulting delay.

        Args:
            pool_id: Pool whose fetch failed.
            rate_limited: Whether the failure was a rate limit. Only rate
                limits escalate the delay.

        Returns:
            The delay now stored for the pool.

        """
        current = self.delay_for(pool_id)
        if not rate_limited:
            return current
        new_delay = min(max(current, self._base) * 2, self._max)
        self._delays[pool_id] = new_delay
        logger.debug("Backoff for %s raised %.1fs -> %.1fs", pool_id, current, new_delay)
        return new_delay

    def snapshot(self) -> dict[str, float]:
        """Return a copy of every non-zero delay, for logging."""
        return {pool_id: delay for pool_id, delay in self._delays.items() if delay > 0}
