"""CLI entry point for the pool monitor app.

All command logic lives in the cli subpackage.
"""

from whirlpool_monitor.apps.pool_monitor.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the pool monitor CLI application."""
    app()


if __name__ == "__main__":
    main()
