"""Configuration dataclass for the pool monitor service.

Hold every tuneable parameter of a monitor run: database and RPC endpoints,
scheduling policy and intervals, batch size, backoff bounds, and the pool
selection. Immutable after construction and validated on creation so a bad
value fails at startup rather than mid-run.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from whirlpool_monitor.core.config import ConfigError, ConfigLoader

_DEFAULT_DB_URL = "sqlite+aiosqlite:///whirlpool_data.db"
_DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
_DEFAULT_FETCH_INTERVAL = 120.0
_DEFAULT_MIN_COLLECTION_INTERVAL = 10.0
_DEFAULT_TICK_INTERVAL = 15.0
_DEFAULT_BATCH_SIZE = 3
_DEFAULT_BASE_BACKOFF = 1.0
_DEFAULT_MAX_BACKOFF = 60.0
_DEFAULT_TICK_ARRAY_RADIUS = 10


class SchedulePolicy(Enum):
    """How collection cycles are paced.

    ``FIXED_CADENCE`` runs a cycle, then waits out the rest of the fetch
    interval. ``MINIMUM_GAP`` wakes on a short timer and skips the wake-up
    when the last successful collection is too recent.
    """

    FIXED_CADENCE = "fixed-cadence"
    MINIMUM_GAP = "minimum-gap"

    @classmethod
    def parse(cls, value: "str | SchedulePolicy") -> "SchedulePolicy":
        """Parse a policy name, accepting dashes or underscores in any case.

        Raises:
            ConfigError: If the name is not a known policy.

        """
        if isinstance(value, SchedulePolicy):
            return value
        normalised = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalised)
        except ValueError as exc:
            choices = ", ".join(p.value for p in cls)
            msg = f"Unknown schedule policy {value!r}, expected one of: {choices}"
            raise ConfigError(msg) from exc


@dataclass(frozen=True)
class MonitorConfig:
    """Immutable configuration for a pool monitor run.

    Attributes:
        db_url: SQLAlchemy async connection string.
        rpc_url: Solana JSON-RPC endpoint.
        rpc_timeout_seconds: HTTP timeout for each RPC request.
        rpc_max_retries: Transport-level retries per RPC request.
        rpc_retry_delay_seconds: Wait between transport retries.
        policy: Cycle pacing policy.
        fetch_interval_seconds: Cycle period under ``FIXED_CADENCE``.
        min_collection_interval_seconds: Minimum gap between successful
            collections under ``MINIMUM_GAP``.
        tick_interval_seconds: Timer period under ``MINIMUM_GAP``.
        batch_size: Maximum concurrent pool fetches.
        base_backoff_seconds: First backoff step after a rate limit.
        max_backoff_seconds: Backoff cap.
        tick_array_radius: Tick arrays kept on each side of the current one.
        timescale: Create TimescaleDB hypertables on PostgreSQL.
        pools: Pool ids to monitor; empty means every configured pool.

    """

    db_url: str = _DEFAULT_DB_URL
    rpc_url: str = _DEFAULT_RPC_URL
    rpc_timeout_seconds: float = 60.0
    rpc_max_retries: int = 3
    rpc_retry_delay_seconds: float = 2.0
    policy: SchedulePolicy = SchedulePolicy.FIXED_CADENCE
    fetch_interval_seconds: float = _DEFAULT_FETCH_INTERVAL
    min_collection_interval_seconds: float = _DEFAULT_MIN_COLLECTION_INTERVAL
    tick_interval_seconds: float = _DEFAULT_TICK_INTERVAL
    batch_size: int = _DEFAULT_BATCH_SIZE
    base_backoff_seconds: float = _DEFAULT_BASE_BACKOFF
    max_backoff_seconds: float = _DEFAULT_MAX_BACKOFF
    tick_array_radius: int = _DEFAULT_TICK_ARRAY_RADIUS
    timescale: bool = False
    pools: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate value ranges.

        Raises:
            ConfigError: If any value is out of range.

        """
        if self.batch_size < 1:
            msg = f"batch_size must be >= 1, got {self.batch_size}"
            raise ConfigError(msg)
        for name in (
            "fetch_interval_seconds",
            "min_collection_interval_seconds",
            "tick_interval_seconds",
            "rpc_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name} must be > 0, got {getattr(self, name)}"
                raise ConfigError(msg)
        if not 0 < self.base_backoff_seconds <= self.max_backoff_seconds:
            msg = (
                "Backoff bounds must satisfy 0 < base <= max, got "
                f"base={self.base_backoff_seconds} max={self.max_backoff_seconds}"
            )
            raise ConfigError(msg)
        if self.rpc_max_retries < 0 or self.tick_array_radius < 0:
            msg = "rpc_max_retries and tick_array_radius must be >= 0"
            raise ConfigError(msg)

    @classmethod
    def from_loader(cls, loader: ConfigLoader, **overrides: Any) -> "MonitorConfig":
        """Build a config from settings, applying non-``None`` overrides.

        Args:
            loader: Loaded settings with ``solana``, ``database`` and
                ``collection`` sections.
            **overrides: Field values that win over settings (typically CLI
                options). ``None`` values are ignored.

        Returns:
            A validated ``MonitorConfig``.

        Raises:
            ConfigError: If a setting cannot be parsed, a value is out of
                range, or an override names an unknown field.

        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            msg = f"Unknown config override(s): {', '.join(unknown)}"
            raise ConfigError(msg)

        values: dict[str, Any] = {
            "db_url": str(loader.get("database.url", _DEFAULT_DB_URL)),
            "timescale": loader.get_bool("database.timescale", default=False),
            "rpc_url": str(loader.get("solana.rpc_url", _DEFAULT_RPC_URL)),
            "rpc_timeout_seconds": loader.get_float("solana.timeout_seconds", 60.0),
            "rpc_max_retries": loader.get_int("solana.max_retries", 3),
            "rpc_retry_delay_seconds": loader.get_float("solana.retry_delay_seconds", 2.0),
            "policy": loader.get("collection.policy", SchedulePolicy.FIXED_CADENCE.value),
            "fetch_interval_seconds": loader.get_float(
                "collection.fetch_interval_seconds", _DEFAULT_FETCH_INTERVAL
            ),
            "min_collection_interval_seconds": loader.get_float(
                "collection.min_collection_interval_seconds", _DEFAULT_MIN_COLLECTION_INTERVAL
            ),
            "tick_interval_seconds": loader.get_float(
                "collection.tick_interval_seconds", _DEFAULT_TICK_INTERVAL
            ),
            "batch_size": loader.get_int("collection.batch_size", _DEFAULT_BATCH_SIZE),
            "base_backoff_seconds": loader.get_float(
                "collection.base_backoff_seconds", _DEFAULT_BASE_BACKOFF
            ),
            "max_backoff_seconds": loader.get_float(
                "collection.max_backoff_seconds", _DEFAULT_MAX_BACKOFF
            ),
            "tick_array_radius": loader.get_int(
                "collection.tick_array_radius", _DEFAULT_TICK_ARRAY_RADIUS
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        values["policy"] = SchedulePolicy.parse(values["policy"])
        values["pools"] = tuple(values.get("pools", ()))
        return cls(**values)
