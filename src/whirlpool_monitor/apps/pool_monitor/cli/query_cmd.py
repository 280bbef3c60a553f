"""CLI commands for inspecting the pool registry and stored snapshots.

``init-db`` creates the schema, ``latest`` prints the most recent price per
pool, ``history`` prints a pool's stored snapshots over a date range, and
``pools`` lists the configured registry.
"""

import asyncio
from typing import Annotated

import typer

from whirlpool_monitor.apps.pool_monitor.cli._helpers import (
    load_settings,
    resolve_db_url,
    resolve_timescale,
)
from whirlpool_monitor.apps.pool_monitor.repository import SnapshotRepository
from whirlpool_monitor.core.models import LatestPrice, PoolConfig, PoolSnapshot
from whirlpool_monitor.core.timestamps import format_ms, now_ms, parse_timestamp_ms


def init_db(
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy async DB URL")] = None,
    timescale: Annotated[
        bool | None,
        typer.Option(
            "--timescale/--no-timescale",
            help="Create TimescaleDB hypertables (default: database.timescale)",
        ),
    ] = None,
) -> None:
    """Create the snapshot tables and indexes if missing."""
    loader, _ = load_settings()
    url = resolve_db_url(loader, db_url)
    asyncio.run(_init_db(url, timescale=resolve_timescale(loader, timescale)))
    typer.echo(f"Schema ready ({url})")


async def _init_db(db_url: str, *, timescale: bool) -> None:
    repo = SnapshotRepository(db_url, timescale=timescale)
    try:
        await repo.ensure_schema()
    finally:
        await repo.close()


def latest(
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy async DB URL")] = None,
) -> None:
    """Print the most recent stored price of every pool."""
    loader, registry = load_settings()
    names = {pool.address: pool.pool_id for pool in registry}
    rows = asyncio.run(_latest(resolve_db_url(loader, db_url)))

    if not rows:
        typer.echo("No prices stored yet")
        return

    typer.echo(f"\n{'Pool':<14} {'Price':>18} {'Time (UTC)':>27}")
    typer.echo("-" * 61)
    for row in rows:
        label = names.get(row.pool_address, row.pool_address[:12])
        typer.echo(f"{label:<14} {row.price:>18.8f} {format_ms(row.timestamp):>27}")


async def _latest(db_url: str) -> list[LatestPrice]:
    repo = SnapshotRepository(db_url)
    try:
        return await repo.latest_prices()
    finally:
        await repo.close()


def _resolve_address(registry: tuple[PoolConfig, ...], pool: str) -> str:
    """Map a pool id to its address; anything else is taken as an address."""
    for entry in registry:
        if pool in (entry.pool_id, entry.address):
            return entry.address
    return pool


def history(
    pool: Annotated[str, typer.Option(help="Pool id (e.g. SOL_USDC) or whirlpool address")],
    start: Annotated[str, typer.Option(help="Start date (YYYY-MM-DD or Unix seconds)")],
    end: Annotated[str | None, typer.Option(help="End date (default: now)")] = None,
    db_url: Annotated[str | None, typer.Option(help="SQLAlchemy async DB URL")] = None,
) -> None:
    """Print stored snapshots of one pool within a time range."""
    loader, registry = load_settings()
    try:
        start_ms = parse_timestamp_ms(start)
        end_ms = parse_timestamp_ms(end) if end else now_ms()
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    address = _resolve_address(registry, pool)
    snapshots = asyncio.run(_history(resolve_db_url(loader, db_url), address, start_ms, end_ms))

    if not snapshots:
        typer.echo(f"No snapshots for {pool} in range")
        return

    typer.echo(f"\n{'Time (UTC)':<27} {'Price':>18} {'Tick':>8} {'Liquidity':>14} {'Liquidity USD':>16}")
    typer.echo("-" * 87)
    for snap in snapshots:
        typer.echo(
            f"{format_ms(snap.timestamp):<27} {snap.price:>18.8f} {snap.tick_current:>8} "
            f"{snap.liquidity:>14.4g} {snap.liquidity_usd:>16.4g}"
        )
    typer.echo(f"\n{len(snapshots)} snapshots")


async def _history(db_url: str, address: str, start_ms: int, end_ms: int) -> list[PoolSnapshot]:
    repo = SnapshotRepository(db_url)
    try:
        return await repo.history(address, start_ms, end_ms)
    finally:
        await repo.close()


def pools() -> None:
    """List the configured pool registry."""
    _, registry = load_settings()
    typer.echo(f"\n{'Pool':<14} {'Spacing':>7}  {'Address':<46}")
    typer.echo("-" * 70)
    for entry in registry:
        typer.echo(f"{entry.pool_id:<14} {entry.tick_spacing:>7}  {entry.address:<46}")
