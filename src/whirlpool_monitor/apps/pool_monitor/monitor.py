"""Composition root and process lifecycle for the pool monitor.

Build the collaborators in dependency order (RPC client, data source,
backoff tracker, batched collector, repository, sink, scheduler), own them
for the lifetime of the process, and translate SIGINT/SIGTERM into a
graceful scheduler stop.
"""

import asyncio
import logging
import signal

from whirlpool_monitor.apps.pool_monitor.backoff import BackoffTracker
from whirlpool_monitor.apps.pool_monitor.batch_collector import BatchedCollector
from whirlpool_monitor.apps.pool_monitor.config import MonitorConfig
from whirlpool_monitor.apps.pool_monitor.repository import SnapshotRepository
from whirlpool_monitor.apps.pool_monitor.scheduler import SchedulerLoop
from whirlpool_monitor.apps.pool_monitor.sink import SnapshotSink
from whirlpool_monitor.clients.solana.client import SolanaRPCClient
from whirlpool_monitor.core.models import PoolConfig
from whirlpool_monitor.core.protocols import PoolDataSource, SnapshotStore
from whirlpool_monitor.data.pools import select_pools
from whirlpool_monitor.data.providers.whirlpool import WhirlpoolDataSource

logger = logging.getLogger(__name__)


class PoolMonitor:
    """Own every collaborator of a monitor run and drive its lifecycle.

    The data source and store are built from ``config`` unless supplied.
    Each instance runs once: ``run()`` refuses to start while running or
    after a previous run has shut down.

    Args:
        config: Validated monitor configuration.
        pools: Full pool registry; ``config.pools`` selects from it.
        source: Pre-built data source, replacing the Solana-backed one.
        store: Pre-built snapshot store, replacing the SQL repository.

    Raises:
        ConfigError: If ``config.pools`` names an unknown pool.

    """

    def __init__(
        self,
        config: MonitorConfig,
        pools: tuple[PoolConfig, ...],
        *,
        source: PoolDataSource | None = None,
        store: SnapshotStore | None = None,
    ) -> None:
        """Build the collaborator graph without performing any I/O.

        Args:
            config: Validated monitor configuration.
            pools: Full pool registry.
            source: Optional pre-built data source.
            store: Optional pre-built snapshot store.

        """
        self._config = config
        self._pools = select_pools(pools, config.pools)

        self._client: SolanaRPCClient | None = None
        if source is None:
            self._client = SolanaRPCClient(
                config.rpc_url,
                timeout=config.rpc_timeout_seconds,
                max_retries=config.rpc_max_retries,
                retry_delay=config.rpc_retry_delay_seconds,
            )
            source = WhirlpoolDataSource(
                self._client,
                self._pools,
                tick_array_radius=config.tick_array_radius,
            )
        self._source = source

        self._tracker = BackoffTracker(config.base_backoff_seconds, config.max_backoff_seconds)
        self._collector = BatchedCollector(self._tracker, batch_size=config.batch_size)
        self._sink = SnapshotSink(
            store if store is not None else SnapshotRepository(config.db_url, timescale=config.timescale)
        )
        self._scheduler = SchedulerLoop(
            self._collector,
            self._sink,
            self._source.observe,
            [pool.pool_id for pool in self._pools],
            policy=config.policy,
            fetch_interval=config.fetch_interval_seconds,
            min_collection_interval=config.min_collection_interval_seconds,
            tick_interval=config.tick_interval_seconds,
        )
        self._running = False
        self._shut_down = False

    @property
    def pools(self) -> tuple[PoolConfig, ...]:
        """Return the pools monitored by this instance."""
        return self._pools

    @property
    def scheduler(self) -> SchedulerLoop:
        """Return the scheduler loop."""
        return self._scheduler

    @property
    def tracker(self) -> BackoffTracker:
        """Return the backoff tracker."""
        return self._tracker

    async def run(self) -> None:
        """Run the scheduler until a shutdown signal or ``stop()``.

        Raises:
            RuntimeError: If the monitor is already running, or has already
                run and released its RPC client.

        """
        if self._running:
            msg = "PoolMonitor is already running"
            raise RuntimeError(msg)
        if self._shut_down:
            msg = "PoolMonitor has already shut down, build a new instance to run again"
            raise RuntimeError(msg)
        self._running = True

        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, self._handle_shutdown)
        loop.add_signal_handler(signal.SIGTERM, self._handle_shutdown)

        logger.info(
            "Monitoring %d pools: %s",
            len(self._pools),
            ", ".join(pool.pool_id for pool in self._pools),
        )
        try:
            await self._scheduler.start()
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
            if self._client is not None:
                await self._client.close()
            self._running = False
            self._shut_down = True
            logger.info("Pool monitor shut down")

    def stop(self) -> None:
        """Request a graceful stop of the scheduler."""
        self._scheduler.stop()

    def _handle_shutdown(self) -> None:
        """Stop the scheduler on SIGINT/SIGTERM."""
        logger.info("Shutdown signal received")
        self.stop()
