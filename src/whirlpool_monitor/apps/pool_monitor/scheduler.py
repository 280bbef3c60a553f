"""Periodic collection loop with two selectable pacing policies.

A cycle collects every tracked pool through the ``BatchedCollector`` and then
persists each successful observation through the ``SnapshotSink``, snapshot
first and then ticks. Cycles repeat under one of two policies:

* ``FIXED_CADENCE``: run a cycle, then wait out the rest of the interval.
* ``MINIMUM_GAP``: wake every ``tick_interval`` and skip the wake-up
  entirely while the last successful collection is more recent than
  ``min_collection_interval``.

``stop()`` is observed between batches and between cycles, never mid-fetch.
The sink is closed exactly once when the loop exits.
"""

import asyncio
import contextlib
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from whirlpool_monitor.apps.pool_monitor.batch_collector import BatchedCollector, FetchFn
from whirlpool_monitor.apps.pool_monitor.config import SchedulePolicy
from whirlpool_monitor.apps.pool_monitor.sink import SnapshotSink

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    """Lifecycle states of the scheduler loop."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class CycleResult:
    """Aggregate outcome of one collection cycle, used for the heartbeat log.

    Attributes:
        cycle: One-based cycle number.
        succeeded: Pool ids fetched successfully.
        rate_limited: Pool ids that hit a rate limit.
        failed: Pool ids whose fetch failed otherwise.
        stored: Number of pool snapshots written.
        store_failed: Pool ids whose snapshot or ticks could not be written.
        tick_count: Number of ticks written.
        elapsed_seconds: Wall time of the cycle.

    """

    cycle: int
    succeeded: list[str] = field(default_factory=list)
    rate_limited: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    stored: int = 0
    store_failed: list[str] = field(default_factory=list)
    tick_count: int = 0
    elapsed_seconds: float = 0.0

    def log_line(self) -> str:
        """Render the structured heartbeat line."""
        return (
            f"[POOL-MONITOR] cycle={self.cycle} ok={len(self.succeeded)} "
            f"rate_limited={len(self.rate_limited)} failed={len(self.failed)} "
            f"stored={self.stored} store_failed={len(self.store_failed)} "
            f"ticks={self.tick_count} elapsed={self.elapsed_seconds:.2f}s"
        )


class SchedulerLoop:
    """Drive collection cycles until stopped.

    Args:
        collector: Bounded-concurrency fetcher.
        sink: Write adapter; its schema is ensured on start and it is closed
            on exit.
        fetch: Coroutine function producing one pool's observation.
        pool_ids: Pools fetched every cycle, in order.
        policy: Cycle pacing policy.
        fetch_interval: Cycle period for ``FIXED_CADENCE``, in seconds.
        min_collection_interval: Minimum gap between successful collections
            for ``MINIMUM_GAP``, in seconds.
        tick_interval: Wake-up period for ``MINIMUM_GAP``, in seconds.
        clock: Monotonic clock in seconds.
        sleep: Suspension between cycles. Defaults to a wait that ``stop()``
            interrupts.

    """

    def __init__(  # noqa: PLR0913
        self,
        collector: BatchedCollector,
        sink: SnapshotSink,
        fetch: FetchFn,
        pool_ids: Sequence[str],
        *,
        policy: SchedulePolicy = SchedulePolicy.FIXED_CADENCE,
        fetch_interval: float = 120.0,
        min_collection_interval: float = 10.0,
        tick_interval: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize the loop in the ``STOPPED`` state.

        Args:
            collector: Bounded-concurrency fetcher.
            sink: Write adapter.
            fetch: Coroutine function producing one pool's observation.
            pool_ids: Pools fetched every cycle, in order.
            policy: Cycle pacing policy.
            fetch_interval: Cycle period for ``FIXED_CADENCE``.
            min_collection_interval: Minimum gap for ``MINIMUM_GAP``.
            tick_interval: Wake-up period for ``MINIMUM_GAP``.
            clock: Monotonic clock in seconds.
            sleep: Suspension between cycles.

        """
        self._collector = collector
        self._sink = sink
        self._fetch = fetch
        self._pool_ids = tuple(pool_ids)
        self._policy = policy
        self._fetch_interval = fetch_interval
        self._min_collection_interval = min_collection_interval
        self._tick_interval = tick_interval
        self._clock = clock
        self._sleep = sleep if sleep is not None else self._wait
        self._wake = asyncio.Event()
        self._state = SchedulerState.STOPPED
        self._cycle_count = 0
        self._last_successful_collection = -math.inf

    @property
    def state(self) -> SchedulerState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def policy(self) -> SchedulePolicy:
        """Return the pacing policy."""
        return self._policy

    @property
    def last_successful_collection(self) -> float:
        """Return the clock reading of the last cycle that stored a snapshot."""
        return self._last_successful_collection

    async def start(self) -> None:
        """Run cycles under the configured policy until ``stop()`` is called.

        A second call while running is ignored with a warning. Schema setup
        failures and any exception escaping the loop propagate after the
        sink has been closed.
        """
        if self._state is not SchedulerState.STOPPED:
            logger.warning("Scheduler is %s, ignoring start", self._state.value)
            return

        self._state = SchedulerState.RUNNING
        self._wake.clear()
        logger.info(
            "Scheduler started: policy=%s pools=%d batch_size=%d",
            self._policy.value,
            len(self._pool_ids),
            self._collector.batch_size,
        )
        try:
            await self._sink.ensure_schema()
            if self._policy is SchedulePolicy.FIXED_CADENCE:
                await self._run_fixed_cadence()
            else:
                await self._run_minimum_gap()
        finally:
            await self._sink.close()
            self._state = SchedulerState.STOPPED
            logger.info("Scheduler stopped after %d cycles", self._cycle_count)

    def stop(self) -> None:
        """Request the loop to exit and wake any inter-cycle wait."""
        if self._state is not SchedulerState.RUNNING:
            return
        logger.info("Scheduler stopping")
        self._state = SchedulerState.STOPPING
        self._wake.set()

    async def _wait(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless ``stop()`` fires first."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)

    async def _run_fixed_cadence(self) -> None:
        while self._state is SchedulerState.RUNNING:
            cycle_start = self._clock()
            await self.run_cycle()
            elapsed = self._clock() - cycle_start
            if self._state is not SchedulerState.RUNNING:
                break
            remaining = self._fetch_interval - elapsed
            if remaining > 0:
                logger.debug("Next cycle in %.1fs", remaining)
                await self._sleep(remaining)

    async def _run_minimum_gap(self) -> None:
        while self._state is SchedulerState.RUNNING:
            tick_start = self._clock()
            since_last = tick_start - self._last_successful_collection
            if since_last < self._min_collection_interval:
                logger.debug(
                    "Skipping collection, last success %.1fs ago (< %.1fs)",
                    since_last,
                    self._min_collection_interval,
                )
            else:
                result = await self.run_cycle()
                if result.stored > 0:
                    self._last_successful_collection = tick_start
            if self._state is not SchedulerState.RUNNING:
                break
            remaining = self._tick_interval - (self._clock() - tick_start)
            if remaining > 0:
                await self._sleep(remaining)

    async def run_cycle(self) -> CycleResult:
        """Collect every pool once and persist the successes.

        A write failure for one pool is logged and does not prevent writes
        for the others.

        Returns:
            The aggregate outcome of the cycle.

        """
        self._cycle_count += 1
        started = self._clock()
        outcome = await self._collector.collect(
            self._pool_ids,
            self._fetch,
            should_continue=lambda: self._state is not SchedulerState.STOPPING,
        )
        result = CycleResult(
            cycle=self._cycle_count,
            succeeded=[pool_id for pool_id, _ in outcome.successes],
            rate_limited=list(outcome.rate_limited),
            failed=list(outcome.failed),
        )

        for pool_id, observation in outcome.successes:
            try:
                await self._sink.upsert_snapshot(observation.snapshot)
            except Exception:
                logger.exception("Failed to persist snapshot for %s", pool_id)
                result.store_failed.append(pool_id)
                continue
            result.stored += 1
            try:
                await self._sink.upsert_ticks(list(observation.ticks))
            except Exception:
                logger.exception("Failed to persist ticks for %s", pool_id)
                result.store_failed.append(pool_id)
                continue
            result.tick_count += len(observation.ticks)

        result.elapsed_seconds = self._clock() - started
        logger.info(result.log_line())
        return result
