"""CLI command for running the pool monitor service.

Poll Orca Whirlpool pools on Solana on a schedule and persist pool, price,
and tick snapshots to a database until interrupted.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

from whirlpool_monitor.apps.pool_monitor.cli._helpers import (
    configure_logging,
    load_settings,
    parse_pool_ids,
)
from whirlpool_monitor.apps.pool_monitor.config import MonitorConfig
from whirlpool_monitor.apps.pool_monitor.monitor import PoolMonitor
from whirlpool_monitor.core.config import ConfigError

logger = logging.getLogger(__name__)


def run(  # noqa: PLR0913
    policy: Annotated[
        str | None, typer.Option(help="Scheduling policy: fixed-cadence or minimum-gap")
    ] = None,
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy async DB URL")] = None,
    rpc_url: Annotated[str | None, typer.Option(help="Solana JSON-RPC endpoint")] = None,
    interval: Annotated[
        float | None, typer.Option(help="Seconds between cycles (fixed-cadence)")
    ] = None,
    min_interval: Annotated[
        float | None, typer.Option(help="Minimum seconds between collections (minimum-gap)")
    ] = None,
    tick_interval: Annotated[
        float | None, typer.Option(help="Timer period in seconds (minimum-gap)")
    ] = None,
    batch_size: Annotated[int | None, typer.Option(help="Maximum concurrent pool fetches")] = None,
    pools: Annotated[str, typer.Option(help="Comma-separated pool ids (default: all)")] = "",
    timescale: Annotated[
        bool | None, typer.Option("--timescale/--no-timescale", help="Create TimescaleDB hypertables")
    ] = None,
    log_file: Annotated[Path | None, typer.Option(help="Also log to a rotating file")] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Run the whirlpool pool monitor until SIGINT/SIGTERM."""
    configure_logging(verbose=verbose, log_file=log_file)
    loader, registry = load_settings()

    try:
        config = MonitorConfig.from_loader(
            loader,
            policy=policy,
            db_url=db_url,
            rpc_url=rpc_url,
            fetch_interval_seconds=interval,
            min_collection_interval_seconds=min_interval,
            tick_interval_seconds=tick_interval,
            batch_size=batch_size,
            timescale=timescale,
            pools=parse_pool_ids(pools) or None,
        )
        monitor = PoolMonitor(config, registry)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"Starting pool monitor ({config.policy.value}, {len(monitor.pools)} pools, db: {config.db_url})"
    )
    try:
        asyncio.run(monitor.run())
    except Exception as exc:
        logger.exception("Pool monitor stopped with an error")
        raise typer.Exit(code=1) from exc
