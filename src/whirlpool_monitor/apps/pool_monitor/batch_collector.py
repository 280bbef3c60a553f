"""Bounded-concurrency fan-out of per-pool fetches.

Split the tracked pools into consecutive batches and fetch each batch
concurrently with ``asyncio.gather``. A batch only starts once the previous
one has fully completed, so at most ``batch_size`` fetches are in flight.
Per-pool failures are classified, fed to the ``BackoffTracker`` and logged;
they never abort the cycle.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from whirlpool_monitor.apps.pool_monitor.backoff import BackoffTracker
from whirlpool_monitor.core.errors import FetchError
from whirlpool_monitor.core.models import PoolObservation

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[PoolObservation]]
SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class CollectionOutcome:
    """Result of collecting across every pool once.

    Attributes:
        successes: ``(pool_id, observation)`` pairs in pool order.
        rate_limited: Pool ids whose fetch hit a rate limit.
        failed: Pool ids whose fetch failed for any other reason.
        skipped: Pool ids never attempted because collection was stopped.

    """

    successes: list[tuple[str, PoolObservation]] = field(default_factory=list)
    rate_limited: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _batches(pool_ids: list[str], size: int) -> list[list[str]]:
    return [pool_ids[i : i + size] for i in range(0, len(pool_ids), size)]


class BatchedCollector:
    """Fetch pools in sequential, concurrently-executed batches.

    Args:
        tracker: Backoff state updated with every fetch outcome.
        batch_size: Maximum number of concurrent fetches.
        sleep: Awaitable sleep used for the per-pool backoff delay.

    Raises:
        ValueError: If ``batch_size`` is less than 1.

    """

    def __init__(
        self,
        tracker: BackoffTracker,
        batch_size: int = 3,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the collector.

        Args:
            tracker: Backoff state updated with every fetch outcome.
            batch_size: Maximum number of concurrent fetches.
            sleep: Awaitable sleep used for the per-pool backoff delay.

        """
        if batch_size < 1:
            msg = f"batch_size must be >= 1, got {batch_size}"
            raise ValueError(msg)
        self._tracker = tracker
        self._batch_size = batch_size
        self._sleep = sleep

    @property
    def batch_size(self) -> int:
        """Return the maximum number of concurrent fetches."""
        return self._batch_size

    async def collect(
        self,
        pool_ids: Iterable[str],
        fetch: FetchFn,
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> CollectionOutcome:
        """Fetch every pool once, batch by batch.

        Args:
            pool_ids: Pools to fetch, in order.
            fetch: Coroutine function returning one pool's observation.
            should_continue: Checked before every batch after the first;
                returning ``False`` stops issuing batches. In-flight fetches
                of the current batch always complete.

        Returns:
            Successful observations plus the ids that failed.

        """
        outcome = CollectionOutcome()
        batches = _batches(list(pool_ids), self._batch_size)

        for index, batch in enumerate(batches):
            if index > 0 and should_continue is not None and not should_continue():
                outcome.skipped.extend(pid for rest in batches[index:] for pid in rest)
                logger.info("Collection stopped with %d pools not fetched", len(outcome.skipped))
                break
            results = await asyncio.gather(*(self._fetch_one(pid, fetch, outcome) for pid in batch))
            outcome.successes.extend((pid, obs) for pid, obs in zip(batch, results, strict=True) if obs is not None)

        return outcome

    async def _fetch_one(
        self,
        pool_id: str,
        fetch: FetchFn,
        outcome: CollectionOutcome,
    ) -> PoolObservation | None:
        """Fetch one pool, honouring and updating its backoff delay."""
        delay = self._tracker.delay_for(pool_id)
        if delay > 0:
            logger.debug("Waiting %.1fs before fetching %s", delay, pool_id)
            await self._sleep(delay)

        try:
            observation = await fetch(pool_id)
        except FetchError as exc:
            if exc.is_rate_limited:
                new_delay = self._tracker.record_failure(pool_id, rate_limited=True)
                outcome.rate_limited.append(pool_id)
                logger.warning("Rate limited on %s, backing off %.1fs", pool_id, new_delay)
            else:
                self._tracker.record_failure(pool_id, rate_limited=False)
                outcome.failed.append(pool_id)
                logger.error("Failed to fetch %s: %s", pool_id, exc)  # noqa: TRY400
            return None
        except Exception:
            self._tracker.record_failure(pool_id, rate_limited=False)
            outcome.failed.append(pool_id)
            logger.exception("Unexpected error fetching %s", pool_id)
            return None

        self._tracker.record_success(pool_id)
        return observation
