"""Idempotent write adapter between the scheduler and the snapshot store."""

import logging

from whirlpool_monitor.core.models import PoolSnapshot, TickSnapshot
from whirlpool_monitor.core.protocols import SnapshotStore

logger = logging.getLogger(__name__)


class SnapshotSink:
    """Forward snapshots to a ``SnapshotStore`` with logging and a close guard.

    Write failures are logged with the pool address and re-raised; the sink
    never retries. ``close()`` may be called any number of times but closes
    the store only once per ``ensure_schema()``, which reopens the sink.

    Args:
        store: Keyed, idempotent snapshot storage.

    """

    def __init__(self, store: SnapshotStore) -> None:
        """Initialize the sink.

        Args:
            store: Keyed, idempotent snapshot storage.

        """
        self._store = store
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return whether the underlying store has been closed."""
        return self._closed

    async def ensure_schema(self) -> None:
        """Create the store's tables and indexes and mark the sink open."""
        self._closed = False
        await self._store.ensure_schema()

    async def upsert_snapshot(self, snapshot: PoolSnapshot) -> None:
        """Write a pool snapshot and its price atomically.

        Args:
            snapshot: Pool observation to persist.

        """
        try:
            await self._store.upsert_pool_and_price(snapshot)
        except Exception:
            logger.error("Failed to store snapshot for %s", snapshot.pool_address)  # noqa: TRY400
            raise

    async def upsert_ticks(self, ticks: list[TickSnapshot]) -> None:
        """Write a batch of ticks; an empty batch does nothing.

        Args:
            ticks: Tick observations to persist.

        """
        if not ticks:
            return
        try:
            await self._store.upsert_ticks(ticks)
        except Exception:
            logger.error("Failed to store %d ticks for %s", len(ticks), ticks[0].pool_address)  # noqa: TRY400
            raise

    async def close(self) -> None:
        """Close the underlying store once."""
        if self._closed:
            return
        self._closed = True
        await self._store.close()
