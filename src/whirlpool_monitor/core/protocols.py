"""Structural protocols for the pluggable data source and snapshot store.

Define the ``PoolDataSource`` and ``SnapshotStore`` interfaces that decouple
the collection engine from the Solana RPC client and the SQL backend. Any class
whose shape matches these protocols can be used without explicit inheritance
(structural subtyping).
"""

from typing import Protocol, runtime_checkable

from whirlpool_monitor.core.models import (
    LatestPrice,
    PoolObservation,
    PoolSnapshot,
    TickSnapshot,
)


@runtime_checkable
class PoolDataSource(Protocol):
    """Async provider of pool state and tick data.

    Implementors raise ``FetchError`` for every failure so that callers can
    tell rate limits apart from other errors.
    """

    async def fetch_pool_state(self, pool_id: str) -> PoolSnapshot:
        """Return the current state of the given pool."""
        ...

    async def fetch_tick_range(
        self,
        pool_id: str,
        current_tick: int,
        tick_spacing: int,
        *,
        timestamp: int | None = None,
    ) -> list[TickSnapshot]:
        """Return initialized ticks around ``current_tick``."""
        ...

    async def observe(self, pool_id: str) -> PoolObservation:
        """Return the pool state together with its surrounding ticks."""
        ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Keyed, idempotent storage for pool and tick snapshots."""

    async def ensure_schema(self) -> None:
        """Create tables and indexes if they do not already exist."""
        ...

    async def upsert_pool_and_price(self, snapshot: PoolSnapshot) -> None:
        """Atomically upsert the pool row and its derived price row."""
        ...

    async def upsert_ticks(self, ticks: list[TickSnapshot]) -> None:
        """Upsert a batch of tick rows."""
        ...

    async def latest_prices(self) -> list[LatestPrice]:
        """Return the most recent price of every stored pool."""
        ...

    async def history(self, pool_address: str, start_ms: int, end_ms: int) -> list[PoolSnapshot]:
        """Return stored snapshots for a pool within a time range."""
        ...

    async def close(self) -> None:
        """Release the underlying connection pool."""
        ...
