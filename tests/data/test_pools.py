"""Tests for the pool registry."""

from typing import Any

import pytest

from whirlpool_monitor.core.config import ConfigError, ConfigLoader
from whirlpool_monitor.data.pools import build_pool_registry, load_pools, select_pools

_TOKENS: dict[str, Any] = {
    "SOL": {"mint": "So11111111111111111111111111111111111111112", "decimals": 9},
    "USDC": {"mint": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "decimals": 6},
}
_POOLS: dict[str, Any] = {
    "SOL/USDC": {
        "name": "SOL/USDC",
        "address": "Czfq3xZZDmsdGdUyrNLtRhGc47cXcZtLG4crryfu44zE",
        "token_a": "SOL",
        "token_b": "USDC",
        "tick_spacing": 4,
    },
    "USDC/SOL": {
        "address": "PoolAddress2222222222222222222222222222222",
        "token_a": "USDC",
        "token_b": "SOL",
        "tick_spacing": "64",
    },
}
_SHIPPED_POOL_COUNT = 13


class TestBuildPoolRegistry:
    """Tests for build_pool_registry."""

    def test_builds_in_declaration_order(self) -> None:
        """Resolve token references and keep declaration order."""
        pools = build_pool_registry(_TOKENS, _POOLS)

        assert [p.pool_id for p in pools] == ["SOL/USDC", "USDC/SOL"]
        assert pools[0].token_a.decimals == 9  # noqa: PLR2004
        assert pools[0].token_b.symbol == "USDC"

    def test_name_defaults_to_id_and_spacing_is_parsed(self) -> None:
        """Fill a missing name and coerce a string tick spacing."""
        pools = build_pool_registry(_TOKENS, _POOLS)
        assert pools[1].name == "USDC/SOL"
        assert pools[1].tick_spacing == 64  # noqa: PLR2004

    def test_unknown_token_raises(self) -> None:
        """Reject a pool that references an undeclared token."""
        bad = {"X/USDC": {**_POOLS["SOL/USDC"], "token_a": "X"}}
        with pytest.raises(ConfigError, match="unknown token 'X'"):
            build_pool_registry(_TOKENS, bad)

    def test_missing_keys_raise(self) -> None:
        """Reject a pool without an address."""
        bad = {"SOL/USDC": {"token_a": "SOL", "token_b": "USDC", "tick_spacing": 4}}
        with pytest.raises(ConfigError, match="missing address"):
            build_pool_registry(_TOKENS, bad)

    def test_bad_token_decimals_raise(self) -> None:
        """Reject a token with non-numeric decimals."""
        with pytest.raises(ConfigError, match="Token SOL"):
            build_pool_registry({"SOL": {"mint": "m", "decimals": "nine"}}, {})

    def test_load_shipped_registry(self) -> None:
        """Load the default pools from settings.yaml."""
        pools = load_pools(ConfigLoader())
        ids = [p.pool_id for p in pools]

        assert len(pools) == _SHIPPED_POOL_COUNT
        assert "SOL_USDC" in ids
        assert len({p.address for p in pools}) == _SHIPPED_POOL_COUNT


class TestSelectPools:
    """Tests for select_pools."""

    def test_empty_selection_keeps_all(self) -> None:
        """Return the registry unchanged."""
        pools = build_pool_registry(_TOKENS, _POOLS)
        assert select_pools(pools, []) == pools

    def test_selection_keeps_registry_order(self) -> None:
        """Keep the requested pools in registry order."""
        pools = build_pool_registry(_TOKENS, _POOLS)
        selected = select_pools(pools, ["USDC/SOL"])
        assert [p.pool_id for p in selected] == ["USDC/SOL"]

    def test_unknown_pool_raises(self) -> None:
        """Reject ids missing from the registry."""
        pools = build_pool_registry(_TOKENS, _POOLS)
        with pytest.raises(ConfigError, match="Unknown pool"):
            select_pools(pools, ["BONK/SOL"])
