"""Orca Whirlpool data source backed by raw Solana account reads.

Fetch whirlpool and tick-array accounts over JSON-RPC, decode the Anchor
account layouts, and convert them into ``PoolSnapshot`` / ``TickSnapshot``
objects. Every on-chain integer is decoded from little-endian bytes exactly
once here; downstream code only ever sees ``int`` tick indices and ``float``
quantities.

All client failures are translated into ``FetchError`` so the collector can
react to rate limits without knowing anything about HTTP or JSON-RPC.
"""

import logging
import math
import struct
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

import httpx

from whirlpool_monitor.clients.solana.client import SolanaRPCClient
from whirlpool_monitor.clients.solana.exceptions import SolanaError, SolanaRateLimitError
from whirlpool_monitor.core.errors import FetchError, FetchErrorKind
from whirlpool_monitor.core.models import (
    PoolConfig,
    PoolObservation,
    PoolSnapshot,
    TickSnapshot,
)
from whirlpool_monitor.core.timestamps import now_ms

logger = logging.getLogger(__name__)

WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"

_Q64 = Decimal(2**64)

# Whirlpool account layout (after the 8-byte Anchor discriminator)
_WHIRLPOOL_ACCOUNT_SIZE = 653
_OFF_TICK_SPACING = 41
_OFF_LIQUIDITY = 49
_OFF_SQRT_PRICE = 65
_OFF_TICK_CURRENT = 81
_OFF_FEE_GROWTH_A = 165
_OFF_FEE_GROWTH_B = 245

# TickArray account layout
TICKS_PER_ARRAY = 88
_TICK_ARRAY_ACCOUNT_SIZE = 9988
_OFF_START_TICK = 8
_OFF_TICKS = 12
_TICK_SIZE = 113
_OFF_TICK_ARRAY_WHIRLPOOL = 9956

_U128 = 16


@dataclass(frozen=True)
class WhirlpoolState:
    """Fields of a decoded whirlpool account used by the monitor."""

    tick_spacing: int
    liquidity: int
    sqrt_price: int
    tick_current: int
    fee_growth_global_a: int
    fee_growth_global_b: int


@dataclass(frozen=True)
class TickState:
    """One decoded tick entry of a tick array."""

    initialized: bool
    liquidity_net: int
    liquidity_gross: int
    fee_growth_outside_a: int
    fee_growth_outside_b: int


def _u128(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + _U128], "little", signed=False)


def _i128(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + _U128], "little", signed=True)


def decode_whirlpool(data: bytes) -> WhirlpoolState:
    """Decode the fields of a whirlpool account needed for a snapshot.

    Args:
        data: Raw account data including the Anchor discriminator.

    Returns:
        The decoded whirlpool state.

    Raises:
        ValueError: If the data is shorter than a whirlpool account.

    """
    if len(data) < _WHIRLPOOL_ACCOUNT_SIZE:
        msg = f"Whirlpool account too short: {len(data)} bytes"
        raise ValueError(msg)
    (tick_spacing,) = struct.unpack_from("<H", data, _OFF_TICK_SPACING)
    (tick_current,) = struct.unpack_from("<i", data, _OFF_TICK_CURRENT)
    return WhirlpoolState(
        tick_spacing=tick_spacing,
        liquidity=_u128(data, _OFF_LIQUIDITY),
        sqrt_price=_u128(data, _OFF_SQRT_PRICE),
        tick_current=tick_current,
        fee_growth_global_a=_u128(data, _OFF_FEE_GROWTH_A),
        fee_growth_global_b=_u128(data, _OFF_FEE_GROWTH_B),
    )


def decode_tick_array(data: bytes) -> tuple[int, list[TickState]]:
    """Decode a tick-array account.

    Args:
        data: Raw account data including the Anchor discriminator.

    Returns:
        The array's start tick index and its 88 tick entries in order.

    Raises:
        ValueError: If the data is not a tick-array account.

    """
    if len(data) != _TICK_ARRAY_ACCOUNT_SIZE:
        msg = f"Tick array account has unexpected size: {len(data)} bytes"
        raise ValueError(msg)
    (start_tick_index,) = struct.unpack_from("<i", data, _OFF_START_TICK)
    ticks: list[TickState] = []
    for i in range(TICKS_PER_ARRAY):
        base = _OFF_TICKS + i * _TICK_SIZE
        ticks.append(
            TickState(
                initialized=data[base] != 0,
                liquidity_net=_i128(data, base + 1),
                liquidity_gross=_u128(data, base + 17),
                fee_growth_outside_a=_u128(data, base + 33),
                fee_growth_outside_b=_u128(data, base + 49),
            )
        )
    return start_tick_index, ticks


def sqrt_price_to_price(sqrt_price_x64: int, decimals_a: int, decimals_b: int) -> Decimal:
    """Convert a Q64.64 square-root price into a decimal-adjusted price.

    Args:
        sqrt_price_x64: Raw ``sqrt_price`` from the whirlpool account.
        decimals_a: Decimals of token A.
        decimals_b: Decimals of token B.

    Returns:
        Price of one token A in units of token B.

    """
    return (Decimal(sqrt_price_x64) / _Q64) ** 2 * Decimal(10) ** (decimals_a - decimals_b)


def tick_array_start(tick_index: int, tick_spacing: int) -> int:
    """Return the start index of the tick array containing ``tick_index``."""
    ticks_in_array = TICKS_PER_ARRAY * tick_spacing
    return (tick_index // ticks_in_array) * ticks_in_array


def _to_fetch_error(pool_id: str, exc: Exception) -> FetchError:
    """Classify a client failure into a tagged fetch error."""
    if isinstance(exc, SolanaRateLimitError):
        return FetchError(FetchErrorKind.RATE_LIMITED, f"{pool_id}: {exc}")
    return FetchError(FetchErrorKind.TRANSIENT, f"{pool_id}: {type(exc).__name__}: {exc}")


_CLIENT_ERRORS = (SolanaError, httpx.HTTPError, ValueError, KeyError, TypeError)


class WhirlpoolDataSource:
    """Fetch pool state and tick data for a fixed set of whirlpools.

    Implement the ``PoolDataSource`` protocol. Pools are addressed by their
    registry id; unknown ids and missing accounts raise ``FetchError`` with
    ``FATAL`` kind because retrying cannot fix them.

    Args:
        client: Solana RPC client used for account reads.
        pools: The tracked pool registry.
        tick_array_radius: Number of tick arrays to keep on each side of the
            array holding the current tick.
        clock: Returns the snapshot timestamp in epoch milliseconds.

    """

    def __init__(
        self,
        client: SolanaRPCClient,
        pools: tuple[PoolConfig, ...],
        *,
        tick_array_radius: int = 10,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the data source.

        Args:
            client: Solana RPC client used for account reads.
            pools: The tracked pool registry.
            tick_array_radius: Tick arrays kept on each side of the current one.
            clock: Returns the snapshot timestamp in epoch milliseconds.

        """
        self._client = client
        self._pools = {pool.pool_id: pool for pool in pools}
        self._tick_array_radius = tick_array_radius
        self._clock = clock
        self._onchain_spacing: dict[str, int] = {}

    @property
    def pool_ids(self) -> list[str]:
        """Return the tracked pool ids in registry order."""
        return list(self._pools)

    def _pool(self, pool_id: str) -> PoolConfig:
        pool = self._pools.get(pool_id)
        if pool is None:
            raise FetchError(FetchErrorKind.FATAL, f"Pool configuration not found for {pool_id}")
        return pool

    async def fetch_pool_state(self, pool_id: str) -> PoolSnapshot:
        """Read and decode the whirlpool account for a pool.

        Token amounts are the virtual reserves ``L / sqrt(P)`` and
        ``L * sqrt(P)``; ``liquidity_usd`` is liquidity valued at the price.

        Args:
            pool_id: Registry id of the pool.

        Returns:
            A snapshot timestamped at the time of the read.

        Raises:
            FetchError: On any failure, tagged with its kind.

        """
        pool = self._pool(pool_id)
        timestamp = self._clock()
        try:
            data = await self._client.get_account_info(pool.address)
        except _CLIENT_ERRORS as exc:
            raise _to_fetch_error(pool_id, exc) from exc
        if data is None:
            raise FetchError(FetchErrorKind.FATAL, f"Whirlpool account {pool.address} not found")
        try:
            state = decode_whirlpool(data)
        except ValueError as exc:
            raise FetchError(FetchErrorKind.FATAL, f"{pool_id}: {exc}") from exc

        self._onchain_spacing[pool_id] = state.tick_spacing
        price = float(sqrt_price_to_price(state.sqrt_price, pool.token_a.decimals, pool.token_b.decimals))
        liquidity = float(state.liquidity)
        sqrt_p = math.sqrt(price)
        return PoolSnapshot(
            timestamp=timestamp,
            pool_address=pool.address,
            token_a_amount=liquidity / sqrt_p if sqrt_p > 0 else 0.0,
            token_b_amount=liquidity * sqrt_p,
            sqrt_price=float(state.sqrt_price),
            liquidity=liquidity,
            tick_current=state.tick_current,
            fee_growth_global_a=float(state.fee_growth_global_a),
            fee_growth_global_b=float(state.fee_growth_global_b),
            price=price,
            liquidity_usd=liquidity * price,
            volume_24h=None,
        )

    async def fetch_tick_range(
        self,
        pool_id: str,
        current_tick: int,
        tick_spacing: int,
        *,
        timestamp: int | None = None,
    ) -> list[TickSnapshot]:
        """Read the pool's tick arrays and return initialized ticks near the price.

        Tick arrays are located with ``getProgramAccounts`` filtered on the
        tick-array size and the owning whirlpool. Arrays further than
        ``tick_array_radius`` arrays from the current one are ignored, and a
        single undecodable array is skipped with a warning.

        Args:
            pool_id: Registry id of the pool.
            current_tick: The pool's current tick index.
            tick_spacing: The pool's tick spacing.
            timestamp: Epoch ms stamped on every tick; defaults to now.

        Returns:
            Initialized ticks ordered by tick index, all sharing one timestamp.

        Raises:
            FetchError: On any failure of the account query.

        """
        pool = self._pool(pool_id)
        if timestamp is None:
            timestamp = self._clock()
        filters = [
            {"dataSize": _TICK_ARRAY_ACCOUNT_SIZE},
            {"memcmp": {"offset": _OFF_TICK_ARRAY_WHIRLPOOL, "bytes": pool.address}},
        ]
        try:
            accounts = await self._client.get_program_accounts(WHIRLPOOL_PROGRAM_ID, filters)
        except _CLIENT_ERRORS as exc:
            raise _to_fetch_error(pool_id, exc) from exc

        ticks_in_array = TICKS_PER_ARRAY * tick_spacing
        current_start = tick_array_start(current_tick, tick_spacing)
        max_distance = self._tick_array_radius * ticks_in_array

        ticks: list[TickSnapshot] = []
        for pubkey, data in accounts:
            try:
                start_tick_index, entries = decode_tick_array(data)
            except ValueError as exc:
                logger.warning("Skipping tick array %s for %s: %s", pubkey, pool_id, exc)
                continue
            if abs(start_tick_index - current_start) > max_distance:
                continue
            ticks.extend(
                TickSnapshot(
                    timestamp=timestamp,
                    pool_address=pool.address,
                    tick_index=start_tick_index + i * tick_spacing,
                    liquidity_net=float(tick.liquidity_net),
                    liquidity_gross=float(tick.liquidity_gross),
                    fee_growth_outside_a=float(tick.fee_growth_outside_a),
                    fee_growth_outside_b=float(tick.fee_growth_outside_b),
                )
                for i, tick in enumerate(entries)
                if tick.initialized
            )

        ticks.sort(key=lambda t: t.tick_index)
        logger.debug("Fetched %d initialized ticks for %s", len(ticks), pool_id)
        return ticks

    async def observe(self, pool_id: str) -> PoolObservation:
        """Fetch the pool state, then the ticks around its current price.

        Ticks carry the snapshot's timestamp. The on-chain tick spacing read
        with the pool state takes precedence over the configured one.

        Args:
            pool_id: Registry id of the pool.

        Returns:
            The pool snapshot and its ticks.

        Raises:
            FetchError: If either read fails.

        """
        snapshot = await self.fetch_pool_state(pool_id)
        spacing = self._onchain_spacing.get(pool_id, self._pool(pool_id).tick_spacing)
        ticks = await self.fetch_tick_range(
            pool_id, snapshot.tick_current, spacing, timestamp=snapshot.timestamp
        )
        return PoolObservation(snapshot=snapshot, ticks=tuple(ticks))
