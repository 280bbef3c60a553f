"""Shared helpers for pool monitor CLI commands.

Centralise logging setup, pool-id parsing, and settings access reused by
every command module.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

import typer

from whirlpool_monitor.core.config import ConfigError, ConfigLoader, get_config
from whirlpool_monitor.core.models import PoolConfig
from whirlpool_monitor.data.pools import load_pools

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOG_FILE_MAX_BYTES = 100 * 1024 * 1024
_LOG_FILE_BACKUPS = 7


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure root logging for a CLI command.

    Log at DEBUG with ``verbose``, otherwise at ``$LOG_LEVEL`` (default
    INFO). When ``log_file`` is given, also write to a size-rotated file.

    Args:
        verbose: Enable debug logging.
        log_file: Optional path of a rotating log file.

    """
    level = logging.DEBUG if verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=_LOG_FILE_MAX_BYTES, backupCount=_LOG_FILE_BACKUPS)
        )
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=_LOG_DATE_FORMAT, handlers=handlers)


def parse_pool_ids(pools: str) -> tuple[str, ...]:
    """Parse a comma-separated pool list, dropping blanks.

    Args:
        pools: e.g. ``"SOL_USDC, JUP_SOL"``.

    Returns:
        Tuple of stripped pool ids.

    """
    return tuple(p.strip() for p in pools.split(",") if p.strip())


def load_settings() -> tuple[ConfigLoader, tuple[PoolConfig, ...]]:
    """Load settings and the pool registry, exiting with code 1 on error."""
    try:
        loader = get_config()
        return loader, load_pools(loader)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def resolve_db_url(loader: ConfigLoader, db_url: str | None) -> str:
    """Return the explicit DB URL or the configured one."""
    if db_url:
        return db_url
    return str(loader.get("database.url", "sqlite+aiosqlite:///whirlpool_data.db"))


def resolve_timescale(loader: ConfigLoader, timescale: bool | None) -> bool:  # noqa: FBT001
    """Return the explicit TimescaleDB flag or ``database.timescale``.

    Exit with code 1 when the configured value is not a boolean.
    """
    if timescale is not None:
        return timescale
    try:
        return loader.get_bool("database.timescale", default=False)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
