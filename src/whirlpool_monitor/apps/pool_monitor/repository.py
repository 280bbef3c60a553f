"""Async repository for persisting and querying pool snapshots.

Wrap SQLAlchemy async engine and session management for the pool monitor.
Every write is an ``INSERT ... ON CONFLICT DO UPDATE`` keyed on the table's
primary key, so re-running a collection for the same timestamp overwrites
rather than duplicates. SQLite (``aiosqlite``) and PostgreSQL (``asyncpg``)
are supported; on PostgreSQL the tables can optionally be converted into
TimescaleDB hypertables.
"""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import and_, func, make_url, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from whirlpool_monitor.apps.pool_monitor.models import (
    HYPERTABLES,
    Base,
    PoolDataRow,
    PriceDataRow,
    TickDataRow,
)
from whirlpool_monitor.core.models import LatestPrice, PoolSnapshot, TickSnapshot

logger = logging.getLogger(__name__)

_TICK_CHUNK_SIZE = 500
_ONE_DAY_MS = 86_400_000

_INSERTS: dict[str, Callable[..., Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _pool_row(snapshot: PoolSnapshot) -> dict[str, Any]:
    return {
        "timestamp": snapshot.timestamp,
        "pool_address": snapshot.pool_address,
        "token_a_amount": snapshot.token_a_amount,
        "token_b_amount": snapshot.token_b_amount,
        "sqrt_price": snapshot.sqrt_price,
        "liquidity": snapshot.liquidity,
        "tick_current": snapshot.tick_current,
        "fee_growth_global_a": snapshot.fee_growth_global_a,
        "fee_growth_global_b": snapshot.fee_growth_global_b,
    }


def _price_row(snapshot: PoolSnapshot) -> dict[str, Any]:
    return {
        "timestamp": snapshot.timestamp,
        "pool_address": snapshot.pool_address,
        "price": snapshot.price,
        "volume_24h": snapshot.volume_24h,
        "liquidity_usd": snapshot.liquidity_usd,
    }


def _tick_row(tick: TickSnapshot) -> dict[str, Any]:
    return {
        "timestamp": tick.timestamp,
        "pool_address": tick.pool_address,
        "tick_index": tick.tick_index,
        "liquidity_net": tick.liquidity_net,
        "liquidity_gross": tick.liquidity_gross,
        "fee_growth_outside_a": tick.fee_growth_outside_a,
        "fee_growth_outside_b": tick.fee_growth_outside_b,
    }


class SnapshotRepository:
    """Async repository for pool, price, and tick snapshot rows.

    Implement the ``SnapshotStore`` protocol. The engine's connection pool is
    shared by every write and released by ``close()``.

    Args:
        db_url: SQLAlchemy async connection string
            (e.g. ``sqlite+aiosqlite:///whirlpool_data.db``).
        timescale: Convert the tables into TimescaleDB hypertables in
            ``ensure_schema``. Only honoured on PostgreSQL.

    Raises:
        ValueError: If the database dialect has no upsert support here.

    """

    def __init__(self, db_url: str, *, timescale: bool = False) -> None:
        """Initialize the repository with an async database engine.

        Args:
            db_url: SQLAlchemy async connection string.
            timescale: Create TimescaleDB hypertables on PostgreSQL.

        """
        dialect = make_url(db_url).get_backend_name()
        if dialect not in _INSERTS:
            msg = f"Unsupported database dialect for upserts: {dialect}"
            raise ValueError(msg)
        self._engine: AsyncEngine = create_async_engine(db_url, echo=False)
        self._insert = _INSERTS[dialect]
        self._timescale = timescale
        if timescale and dialect != "postgresql":
            logger.warning("TimescaleDB requested on %s, hypertables will not be created", dialect)
            self._timescale = False
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def dialect(self) -> str:
        """Return the name of the database dialect in use."""
        return self._engine.dialect.name

    async def ensure_schema(self) -> None:
        """Create all tables and indexes if they do not already exist.

        Idempotent, safe to call on every startup.
        """
        async with self._engine.begin() as conn:
            if self._timescale:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE"))
            await conn.run_sync(Base.metadata.create_all)
            if self._timescale:
                await self._create_hypertables(conn)
        logger.info("Database tables initialised")

    @staticmethod
    async def _create_hypertables(conn: AsyncConnection) -> None:
        """Partition every snapshot table by timestamp in one-day chunks."""
        for table in HYPERTABLES:
            await conn.execute(
                text(
                    f"SELECT create_hypertable('{table}', 'timestamp', "  # noqa: S608
                    f"chunk_time_interval => {_ONE_DAY_MS}, if_not_exists => TRUE)"
                )
            )
        logger.info("TimescaleDB hypertables ensured for %s", ", ".join(HYPERTABLES))

    def _upsert(self, model: type[Base], rows: list[dict[str, Any]]) -> Any:
        """Build an upsert that replaces every non-key column on conflict."""
        stmt = self._insert(model).values(rows)
        table = model.__table__
        keys = [col.name for col in table.primary_key.columns]
        updates = {col.name: stmt.excluded[col.name] for col in table.columns if col.name not in keys}
        return stmt.on_conflict_do_update(index_elements=keys, set_=updates)

    async def upsert_pool_and_price(self, snapshot: PoolSnapshot) -> None:
        """Write the pool row and its price row in a single transaction.

        Args:
            snapshot: Pool observation to persist.

        """
        async with self._session_factory() as session, session.begin():
            await session.execute(self._upsert(PoolDataRow, [_pool_row(snapshot)]))
            await session.execute(self._upsert(PriceDataRow, [_price_row(snapshot)]))
        logger.debug("Stored snapshot %s@%d", snapshot.pool_address, snapshot.timestamp)

    async def upsert_ticks(self, ticks: list[TickSnapshot]) -> None:
        """Write tick rows in chunks inside one transaction.

        Args:
            ticks: Tick observations to persist.

        """
        if not ticks:
            return
        rows = [_tick_row(tick) for tick in ticks]
        async with self._session_factory() as session, session.begin():
            for start in range(0, len(rows), _TICK_CHUNK_SIZE):
                await session.execute(self._upsert(TickDataRow, rows[start : start + _TICK_CHUNK_SIZE]))
        logger.debug("Stored %d ticks", len(rows))

    async def latest_prices(self) -> list[LatestPrice]:
        """Return the most recent stored price of every pool.

        Returns:
            One ``LatestPrice`` per pool address, ordered by address.

        """
        latest = (
            select(
                PriceDataRow.pool_address,
                func.max(PriceDataRow.timestamp).label("max_ts"),
            )
            .group_by(PriceDataRow.pool_address)
            .subquery()
        )
        stmt = (
            select(PriceDataRow)
            .join(
                latest,
                and_(
                    PriceDataRow.pool_address == latest.c.pool_address,
                    PriceDataRow.timestamp == latest.c.max_ts,
                ),
            )
            .order_by(PriceDataRow.pool_address)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                LatestPrice(pool_address=row.pool_address, price=row.price, timestamp=row.timestamp)
                for row in result.scalars().all()
            ]

    async def history(self, pool_address: str, start_ms: int, end_ms: int) -> list[PoolSnapshot]:
        """Query stored snapshots for a pool within a time range.

        Price columns come from a left join on ``solana_price_data``; a pool
        row without a matching price row reports a price of 0.

        Args:
            pool_address: Whirlpool address to filter on.
            start_ms: Inclusive lower bound (epoch milliseconds).
            end_ms: Inclusive upper bound (epoch milliseconds).

        Returns:
            Snapshots ordered by timestamp ascending.

        """
        stmt = (
            select(PoolDataRow, PriceDataRow)
            .outerjoin(
                PriceDataRow,
                and_(
                    PriceDataRow.pool_address == PoolDataRow.pool_address,
                    PriceDataRow.timestamp == PoolDataRow.timestamp,
                ),
            )
            .where(
                PoolDataRow.pool_address == pool_address,
                PoolDataRow.timestamp >= start_ms,
                PoolDataRow.timestamp <= end_ms,
            )
            .order_by(PoolDataRow.timestamp)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_snapshot(pool, price) for pool, price in result.all()]

    async def close(self) -> None:
        """Dispose the async engine and release all connections."""
        await self._engine.dispose()
        logger.info("Database engine disposed")


def _to_snapshot(pool: PoolDataRow, price: PriceDataRow | None) -> PoolSnapshot:
    """Rebuild a snapshot from a pool row and its optional price row."""
    return PoolSnapshot(
        timestamp=pool.timestamp,
        pool_address=pool.pool_address,
        token_a_amount=pool.token_a_amount,
        token_b_amount=pool.token_b_amount,
        sqrt_price=pool.sqrt_price,
        liquidity=pool.liquidity,
        tick_current=pool.tick_current,
        fee_growth_global_a=pool.fee_growth_global_a,
        fee_growth_global_b=pool.fee_growth_global_b,
        price=price.price if price is not None else 0.0,
        liquidity_usd=price.liquidity_usd if price is not None else 0.0,
        volume_24h=price.volume_24h if price is not None else None,
    )
