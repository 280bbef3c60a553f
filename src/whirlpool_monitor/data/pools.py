"""Pool registry built from the ``tokens`` and ``pools`` configuration sections.

Each pool entry references its two tokens by symbol; the registry resolves
those references into ``PoolConfig`` objects once at startup. The resulting
tuple is the fixed set of pools tracked for the whole process run.
"""

from collections.abc import Iterable
from typing import Any, cast

from whirlpool_monitor.core.config import ConfigError, ConfigLoader
from whirlpool_monitor.core.models import PoolConfig, TokenConfig

_REQUIRED_POOL_KEYS = ("address", "token_a", "token_b", "tick_spacing")


def _parse_tokens(raw: dict[str, Any]) -> dict[str, TokenConfig]:
    """Build token configs keyed by symbol."""
    tokens: dict[str, TokenConfig] = {}
    for symbol, entry in raw.items():
        if not isinstance(entry, dict):
            msg = f"Token {symbol} must be a mapping"
            raise ConfigError(msg)
        entry = cast("dict[str, Any]", entry)
        try:
            tokens[symbol] = TokenConfig(
                symbol=symbol,
                mint=str(entry["mint"]),
                decimals=int(entry["decimals"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Token {symbol} is missing or has an invalid mint/decimals"
            raise ConfigError(msg) from exc
    return tokens


def _resolve_token(tokens: dict[str, TokenConfig], symbol: Any, pool_id: str) -> TokenConfig:
    """Look up a token referenced by a pool entry."""
    token = tokens.get(str(symbol))
    if token is None:
        msg = f"Pool {pool_id} references unknown token {symbol!r}"
        raise ConfigError(msg)
    return token


def build_pool_registry(
    tokens_section: dict[str, Any],
    pools_section: dict[str, Any],
) -> tuple[PoolConfig, ...]:
    """Resolve raw configuration sections into an ordered pool registry.

    Args:
        tokens_section: Mapping of token symbol to ``{mint, decimals}``.
        pools_section: Mapping of pool id to ``{name, address, token_a,
            token_b, tick_spacing}``.

    Returns:
        Pool configs in declaration order.

    Raises:
        ConfigError: If a pool is malformed or references an unknown token.

    """
    tokens = _parse_tokens(tokens_section)
    pools: list[PoolConfig] = []
    for pool_id, entry in pools_section.items():
        if not isinstance(entry, dict):
            msg = f"Pool {pool_id} must be a mapping"
            raise ConfigError(msg)
        entry = cast("dict[str, Any]", entry)
        missing = [k for k in _REQUIRED_POOL_KEYS if k not in entry]
        if missing:
            msg = f"Pool {pool_id} is missing {', '.join(missing)}"
            raise ConfigError(msg)
        try:
            tick_spacing = int(entry["tick_spacing"])
        except (TypeError, ValueError) as exc:
            msg = f"Pool {pool_id} has an invalid tick_spacing"
            raise ConfigError(msg) from exc
        pools.append(
            PoolConfig(
                pool_id=str(pool_id),
                name=str(entry.get("name", pool_id)),
                address=str(entry["address"]),
                token_a=_resolve_token(tokens, entry["token_a"], pool_id),
                token_b=_resolve_token(tokens, entry["token_b"], pool_id),
                tick_spacing=tick_spacing,
            )
        )
    return tuple(pools)


def load_pools(loader: ConfigLoader) -> tuple[PoolConfig, ...]:
    """Build the pool registry from a loaded configuration.

    Args:
        loader: Configuration loader holding ``tokens`` and ``pools`` sections.

    Returns:
        Pool configs in declaration order.

    """
    return build_pool_registry(loader.get_section("tokens"), loader.get_section("pools"))


def select_pools(pools: tuple[PoolConfig, ...], pool_ids: Iterable[str]) -> tuple[PoolConfig, ...]:
    """Filter the registry down to the requested pool ids.

    Args:
        pools: Full registry.
        pool_ids: Pool ids to keep. An empty iterable keeps every pool.

    Returns:
        The selected pools, in registry order.

    Raises:
        ConfigError: If any requested id is not in the registry.

    """
    wanted = list(pool_ids)
    if not wanted:
        return pools
    known = {p.pool_id for p in pools}
    unknown = [p for p in wanted if p not in known]
    if unknown:
        msg = f"Unknown pool(s): {', '.join(unknown)}"
        raise ConfigError(msg)
    return tuple(p for p in pools if p.pool_id in wanted)
