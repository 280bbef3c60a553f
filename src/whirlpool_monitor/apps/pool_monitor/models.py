"""SQLAlchemy ORM models for the pool monitor database.

Define the three time-series tables written on every collection cycle:
pool state, derived price, and per-tick liquidity. Rows are keyed by epoch
millisecond timestamp and pool address (plus tick index for ticks) so that
re-writing the same observation updates it in place.
"""

from sqlalchemy import BigInteger, Float, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base class for all pool monitor ORM models."""


class PoolDataRow(Base):
    """Whirlpool state captured at one point in time.

    Attributes:
        timestamp: Epoch milliseconds of the observation.
        pool_address: Base58 whirlpool address.
        token_a_amount: Virtual token A reserve.
        token_b_amount: Virtual token B reserve.
        sqrt_price: Raw Q64.64 square-root price.
        liquidity: Active liquidity.
        tick_current: Current tick index.
        fee_growth_global_a: Global fee growth for token A.
        fee_growth_global_b: Global fee growth for token B.

    """

    __tablename__ = "solana_pool_data"

    timestamp: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    pool_address: Mapped[str] = mapped_column(String, primary_key=True)
    token_a_amount: Mapped[float] = mapped_column(Float)
    token_b_amount: Mapped[float] = mapped_column(Float)
    sqrt_price: Mapped[float] = mapped_column(Float)
    liquidity: Mapped[float] = mapped_column(Float)
    tick_current: Mapped[int] = mapped_column(Integer)
    fee_growth_global_a: Mapped[float] = mapped_column(Float)
    fee_growth_global_b: Mapped[float] = mapped_column(Float)

    __table_args__ = (Index("idx_pool_data_pool_time", "pool_address", "timestamp"),)


class PriceDataRow(Base):
    """Price derived from a pool observation.

    Attributes:
        timestamp: Epoch milliseconds of the observation.
        pool_address: Base58 whirlpool address.
        price: Token A price in token B.
        volume_24h: Trailing 24h volume, when known.
        liquidity_usd: Liquidity valued at the price.

    """

    __tablename__ = "solana_price_data"

    timestamp: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    pool_address: Mapped[str] = mapped_column(String, primary_key=True)
    price: Mapped[float] = mapped_column(Float)
    volume_24h: Mapped[float | None] = mapped_column(Float, nullable=True)
    liquidity_usd: Mapped[float] = mapped_column(Float)

    __table_args__ = (Index("idx_price_data_pool_time", "pool_address", "timestamp"),)


class TickDataRow(Base):
    """One initialized tick of a pool at one point in time."""

    __tablename__ = "solana_ticks_data"

    timestamp: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    pool_address: Mapped[str] = mapped_column(String, primary_key=True)
    tick_index: Mapped[int] = mapped_column(Integer, primary_key=True)
    liquidity_net: Mapped[float] = mapped_column(Float)
    liquidity_gross: Mapped[float] = mapped_column(Float)
    fee_growth_outside_a: Mapped[float] = mapped_column(Float)
    fee_growth_outside_b: Mapped[float] = mapped_column(Float)

    __table_args__ = (Index("idx_ticks_data_pool_time", "pool_address", "timestamp"),)


HYPERTABLES = (
    PoolDataRow.__tablename__,
    PriceDataRow.__tablename__,
    TickDataRow.__tablename__,
)
