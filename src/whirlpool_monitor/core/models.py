"""Core data models shared across the whirlpool monitor.

Define the immutable value objects that flow between the pool registry, the
on-chain data source, the collection engine, and the snapshot store: token and
pool configuration, point-in-time pool and tick snapshots, and the per-fetch
observation that bundles them.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenConfig:
    """Static metadata for one SPL token.

    Attributes:
        symbol: Display symbol (e.g. ``SOL``).
        mint: Base58 mint address.
        decimals: Number of decimal places used by the mint.

    """

    symbol: str
    mint: str
    decimals: int


@dataclass(frozen=True)
class PoolConfig:
    """A tracked liquidity pool and its static descriptive metadata.

    Loaded once from configuration and never mutated during a run.

    Attributes:
        pool_id: Registry key used in logs and on the CLI (e.g. ``SOL_USDC``).
        name: Human-readable trading pair name.
        address: Base58 address of the whirlpool account.
        token_a: Base token of the pair.
        token_b: Quote token of the pair.
        tick_spacing: Tick spacing the pool was created with.

    """

    pool_id: str
    name: str
    address: str
    token_a: TokenConfig
    token_b: TokenConfig
    tick_spacing: int


@dataclass(frozen=True)
class PoolSnapshot:
    """Point-in-time state of a whirlpool, keyed by ``(timestamp, pool_address)``.

    Large on-chain integers (liquidity, fee growth, sqrt price) are carried
    as ``float`` once decoded at the source boundary.

    Attributes:
        timestamp: Epoch milliseconds when the state was observed.
        pool_address: Base58 whirlpool address.
        token_a_amount: Virtual token A reserve derived from liquidity and price.
        token_b_amount: Virtual token B reserve derived from liquidity and price.
        sqrt_price: Raw Q64.64 square-root price.
        liquidity: Active in-range liquidity.
        tick_current: Current tick index.
        fee_growth_global_a: Global fee growth counter for token A.
        fee_growth_global_b: Global fee growth counter for token B.
        price: Price of token A denominated in token B.
        liquidity_usd: Liquidity valued at the current price.
        volume_24h: Trailing 24h volume, when known.

    """

    timestamp: int
    pool_address: str
    token_a_amount: float
    token_b_amount: float
    sqrt_price: float
    liquidity: float
    tick_current: int
    fee_growth_global_a: float
    fee_growth_global_b: float
    price: float
    liquidity_usd: float
    volume_24h: float | None = None


@dataclass(frozen=True)
class TickSnapshot:
    """State of one initialized tick, keyed by ``(timestamp, pool_address, tick_index)``.

    Attributes:
        timestamp: Epoch milliseconds shared by all ticks of one fetch.
        pool_address: Base58 whirlpool address.
        tick_index: Absolute tick index.
        liquidity_net: Net liquidity change when crossing the tick.
        liquidity_gross: Total liquidity referencing the tick.
        fee_growth_outside_a: Fee growth outside the tick for token A.
        fee_growth_outside_b: Fee growth outside the tick for token B.

    """

    timestamp: int
    pool_address: str
    tick_index: int
    liquidity_net: float
    liquidity_gross: float
    fee_growth_outside_a: float
    fee_growth_outside_b: float


@dataclass(frozen=True)
class PoolObservation:
    """Everything fetched for one pool in one cycle.

    Attributes:
        snapshot: The pool state.
        ticks: Initialized ticks around the current price, possibly empty.

    """

    snapshot: PoolSnapshot
    ticks: tuple[TickSnapshot, ...] = ()


@dataclass(frozen=True)
class LatestPrice:
    """Most recent stored price for a pool."""

    pool_address: str
    price: float
    timestamp: int
