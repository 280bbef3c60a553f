"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

import whirlpool_monitor.core.config as config_module

_OVERRIDABLE_ENV_VARS = (
    "SOLANA_RPC_URL",
    "DATABASE_URL",
    "DB_TIMESCALE",
    "COLLECTION_POLICY",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_settings() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Load the shipped settings.yaml defaults regardless of the caller's shell.

    The default configuration reads ``${DATABASE_URL}``, ``${SOLANA_RPC_URL}``
    and friends from the environment. Strip them for every test and drop the
    cached global loader so each test sees the shipped defaults.
    """
    clean = {k: v for k, v in os.environ.items() if k not in _OVERRIDABLE_ENV_VARS}
    config_module._config = None  # noqa: SLF001
    with patch.dict(os.environ, clean, clear=True):
        yield
    config_module._config = None  # noqa: SLF001
