"""Tests for the pool monitor CLI commands."""

import asyncio
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from whirlpool_monitor.apps.pool_monitor.cli import app
from whirlpool_monitor.apps.pool_monitor.cli._helpers import configure_logging, parse_pool_ids
from whirlpool_monitor.apps.pool_monitor.config import SchedulePolicy
from whirlpool_monitor.apps.pool_monitor.repository import SnapshotRepository
from whirlpool_monitor.core.models import PoolSnapshot

_MONITOR_CLS = "whirlpool_monitor.apps.pool_monitor.cli.run_cmd.PoolMonitor"
_REPOSITORY_CLS = "whirlpool_monitor.apps.pool_monitor.cli.query_cmd.SnapshotRepository"
_SOL_USDC_ADDRESS = "HJPjoWUrhoZzkNfRpHuieeFk9WcZWjwy6PBjZ81ngndJ"
_JAN_2_MS = 1_704_153_600_000


def _mock_monitor() -> MagicMock:
    monitor = MagicMock()
    monitor.run = AsyncMock()
    monitor.pools = ()
    return monitor


def _mock_repository() -> MagicMock:
    repo = MagicMock()
    repo.ensure_schema = AsyncMock()
    repo.close = AsyncMock()
    return repo


def _db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'whirlpool.db'}"


async def _seed(db_url: str, price: float) -> None:
    repo = SnapshotRepository(db_url)
    try:
        await repo.ensure_schema()
        await repo.upsert_pool_and_price(
            PoolSnapshot(
                timestamp=_JAN_2_MS,
                pool_address=_SOL_USDC_ADDRESS,
                token_a_amount=1.0,
                token_b_amount=150.0,
                sqrt_price=2.0**64,
                liquidity=1e9,
                tick_current=-20000,
                fee_growth_global_a=0.0,
                fee_growth_global_b=0.0,
                price=price,
                liquidity_usd=1.5e11,
            )
        )
    finally:
        await repo.close()


class TestParsePoolIds:
    """Tests for comma-separated pool id parsing."""

    def test_empty_string(self) -> None:
        """Return an empty tuple for an empty input string."""
        assert parse_pool_ids("") == ()

    def test_strips_and_drops_blanks(self) -> None:
        """Strip whitespace and drop empty entries."""
        assert parse_pool_ids(" SOL_USDC, ,JUP_SOL ") == ("SOL_USDC", "JUP_SOL")


class TestConfigureLogging:
    """Tests for CLI logging setup."""

    def test_verbose_logs_at_debug(self) -> None:
        """Configure the root logger at DEBUG with --verbose."""
        with patch("whirlpool_monitor.apps.pool_monitor.cli._helpers.logging.basicConfig") as mock_basic:
            configure_logging(verbose=True)
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG

    def test_log_level_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Fall back to $LOG_LEVEL when not verbose."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        with patch("whirlpool_monitor.apps.pool_monitor.cli._helpers.logging.basicConfig") as mock_basic:
            configure_logging()
        assert mock_basic.call_args.kwargs["level"] == "WARNING"

    def test_log_file_adds_rotating_handler(self, tmp_path: Path) -> None:
        """Add a size-rotated file handler and create its directory."""
        log_file = tmp_path / "logs" / "monitor.log"
        with patch("whirlpool_monitor.apps.pool_monitor.cli._helpers.logging.basicConfig") as mock_basic:
            configure_logging(log_file=log_file)

        handlers = mock_basic.call_args.kwargs["handlers"]
        rotating = [h for h in handlers if isinstance(h, RotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 100 * 1024 * 1024
        assert rotating[0].backupCount == 7  # noqa: PLR2004
        assert log_file.parent.is_dir()
        for handler in handlers:
            handler.close()


class TestRunCommand:
    """Tests for the run command."""

    def test_starts_monitor_with_shipped_defaults(self) -> None:
        """Build and run the monitor from settings.yaml defaults."""
        runner = CliRunner()
        with patch(_MONITOR_CLS) as mock_cls:
            mock_cls.return_value = _mock_monitor()
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0
        assert "Starting pool monitor (fixed-cadence" in result.output
        config = mock_cls.call_args.args[0]
        assert config.policy is SchedulePolicy.FIXED_CADENCE
        assert config.pools == ()
        mock_cls.return_value.run.assert_awaited_once()

    def test_flags_override_settings(self) -> None:
        """Forward CLI flags into the monitor configuration."""
        runner = CliRunner()
        with patch(_MONITOR_CLS) as mock_cls:
            mock_cls.return_value = _mock_monitor()
            result = runner.invoke(
                app,
                [
                    "run",
                    "--policy",
                    "minimum_gap",
                    "--db-url",
                    "sqlite+aiosqlite:///:memory:",
                    "--min-interval",
                    "5",
                    "--tick-interval",
                    "2",
                    "--batch-size",
                    "4",
                    "--pools",
                    "SOL_USDC,JUP_SOL",
                ],
            )

        assert result.exit_code == 0
        config = mock_cls.call_args.args[0]
        assert config.policy is SchedulePolicy.MINIMUM_GAP
        assert config.db_url == "sqlite+aiosqlite:///:memory:"
        assert config.min_collection_interval_seconds == 5.0  # noqa: PLR2004
        assert config.tick_interval_seconds == 2.0  # noqa: PLR2004
        assert config.batch_size == 4  # noqa: PLR2004
        assert config.pools == ("SOL_USDC", "JUP_SOL")

    def test_unknown_policy_exits_with_error(self) -> None:
        """Exit with code 1 on an unknown scheduling policy."""
        runner = CliRunner()
        with patch(_MONITOR_CLS) as mock_cls:
            result = runner.invoke(app, ["run", "--policy", "hourly"])

        assert result.exit_code == 1
        mock_cls.assert_not_called()

    def test_unknown_pool_exits_with_error(self) -> None:
        """Exit with code 1 when --pools names an unknown pool."""
        runner = CliRunner()
        result = runner.invoke(app, ["run", "--pools", "BOGUS_SOL"])

        assert result.exit_code == 1

    def test_invalid_batch_size_exits_with_error(self) -> None:
        """Exit with code 1 when validation rejects a value."""
        runner = CliRunner()
        with patch(_MONITOR_CLS):
            result = runner.invoke(app, ["run", "--batch-size", "0"])

        assert result.exit_code == 1

    def test_monitor_failure_exits_with_error(self) -> None:
        """Exit with code 1 when the monitor raises."""
        runner = CliRunner()
        with patch(_MONITOR_CLS) as mock_cls:
            monitor = _mock_monitor()
            monitor.run = AsyncMock(side_effect=RuntimeError("engine exploded"))
            mock_cls.return_value = monitor
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1


class TestQueryCommands:
    """Tests for init-db, latest, history and pools."""

    def test_pools_lists_registry(self) -> None:
        """Print every configured pool with its address."""
        runner = CliRunner()
        result = runner.invoke(app, ["pools"])

        assert result.exit_code == 0
        assert "SOL_USDC" in result.output
        assert _SOL_USDC_ADDRESS in result.output

    def test_init_db_creates_schema(self, tmp_path: Path) -> None:
        """Create the database file and report the URL."""
        url = _db_url(tmp_path)
        runner = CliRunner()
        result = runner.invoke(app, ["init-db", "--db-url", url])

        assert result.exit_code == 0
        assert "Schema ready" in result.output
        assert (tmp_path / "whirlpool.db").exists()

    @pytest.mark.parametrize(
        ("env_value", "flags", "expected"),
        [
            ("true", [], True),
            ("false", [], False),
            ("true", ["--no-timescale"], False),
            ("false", ["--timescale"], True),
        ],
    )
    def test_init_db_timescale_follows_settings_unless_flagged(
        self,
        monkeypatch: pytest.MonkeyPatch,
        env_value: str,
        flags: list[str],
        expected: bool,  # noqa: FBT001
    ) -> None:
        """Take the TimescaleDB flag from DB_TIMESCALE when no option is given."""
        monkeypatch.setenv("DB_TIMESCALE", env_value)
        runner = CliRunner()
        with patch(_REPOSITORY_CLS) as mock_cls:
            mock_cls.return_value = _mock_repository()
            result = runner.invoke(app, ["init-db", "--db-url", "sqlite+aiosqlite:///:memory:", *flags])

        assert result.exit_code == 0
        mock_cls.assert_called_once_with("sqlite+aiosqlite:///:memory:", timescale=expected)
        mock_cls.return_value.ensure_schema.assert_awaited_once()
        mock_cls.return_value.close.assert_awaited_once()

    def test_init_db_invalid_timescale_setting_exits_with_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Exit with code 1 when DB_TIMESCALE is not a boolean."""
        monkeypatch.setenv("DB_TIMESCALE", "sometimes")
        runner = CliRunner()
        with patch(_REPOSITORY_CLS) as mock_cls:
            result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 1
        mock_cls.assert_not_called()

    def test_latest_on_empty_database(self, tmp_path: Path) -> None:
        """Report that nothing has been stored yet."""
        url = _db_url(tmp_path)
        runner = CliRunner()
        runner.invoke(app, ["init-db", "--db-url", url])
        result = runner.invoke(app, ["latest", "--db-url", url])

        assert result.exit_code == 0
        assert "No prices stored yet" in result.output

    def test_latest_labels_known_pools(self, tmp_path: Path) -> None:
        """Print stored prices labelled with registry pool ids."""
        url = _db_url(tmp_path)
        asyncio.run(_seed(url, 151.25))
        runner = CliRunner()
        result = runner.invoke(app, ["latest", "--db-url", url])

        assert result.exit_code == 0
        assert "SOL_USDC" in result.output
        assert "151.25000000" in result.output

    def test_history_by_pool_id(self, tmp_path: Path) -> None:
        """Resolve a pool id to its address and print its snapshots."""
        url = _db_url(tmp_path)
        asyncio.run(_seed(url, 99.5))
        runner = CliRunner()
        result = runner.invoke(
            app,
            ["history", "--pool", "SOL_USDC", "--start", "2024-01-01", "--end", "2024-01-03", "--db-url", url],
        )

        assert result.exit_code == 0
        assert "99.50000000" in result.output
        assert "1 snapshots" in result.output

    def test_history_empty_range(self, tmp_path: Path) -> None:
        """Report an empty range."""
        url = _db_url(tmp_path)
        asyncio.run(_seed(url, 99.5))
        runner = CliRunner()
        result = runner.invoke(
            app,
            ["history", "--pool", _SOL_USDC_ADDRESS, "--start", "2024-02-01", "--end", "2024-02-02", "--db-url", url],
        )

        assert result.exit_code == 0
        assert "No snapshots" in result.output

    def test_history_bad_start_exits_with_error(self) -> None:
        """Exit with code 1 on an unparseable start date."""
        runner = CliRunner()
        result = runner.invoke(app, ["history", "--pool", "SOL_USDC", "--start", "yesterday"])

        assert result.exit_code == 1


class TestMain:
    """Tests for the console script entry point."""

    def test_main_invokes_app(self) -> None:
        """Delegate to the Typer application."""
        from whirlpool_monitor.apps.pool_monitor import run  # noqa: PLC0415

        with patch.object(run, "app") as mock_app:
            run.main()
        mock_app.assert_called_once_with()
