"""CLI subpackage for the pool monitor app.

Create the Typer application and register all command modules.
"""

import typer

from whirlpool_monitor.apps.pool_monitor.cli.query_cmd import history, init_db, latest, pools
from whirlpool_monitor.apps.pool_monitor.cli.run_cmd import run

app = typer.Typer(help="Orca Whirlpool pool monitor")

app.command()(run)
app.command(name="init-db")(init_db)
app.command()(latest)
app.command()(history)
app.command()(pools)

__all__ = ["app"]
