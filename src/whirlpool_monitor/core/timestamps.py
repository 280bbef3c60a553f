"""Epoch-millisecond helpers for snapshot keys and CLI date arguments."""

import time
from datetime import UTC, datetime

_MS_PER_SECOND = 1000


def now_ms() -> int:
    """Return the current wall-clock time as epoch milliseconds."""
    return int(time.time() * _MS_PER_SECOND)


def parse_timestamp_ms(value: str) -> int:
    """Parse a date string or raw integer into epoch milliseconds.

    Accept ISO 8601 date strings (``2024-01-01``, ``2024-01-01T12:00:00``),
    interpreted as UTC, or raw integer Unix timestamps in seconds.

    Args:
        value: Date string or integer timestamp.

    Returns:
        Epoch milliseconds.

    Raises:
        ValueError: If the value cannot be parsed.

    """
    try:
        return int(value) * _MS_PER_SECOND
    except ValueError:
        pass

    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"):
        try:
            dt = datetime.strptime(value, fmt).replace(tzinfo=UTC)
            return int(dt.timestamp()) * _MS_PER_SECOND
        except ValueError:
            continue

    msg = f"Cannot parse timestamp: {value!r}. Use ISO 8601 (YYYY-MM-DD) or a Unix timestamp."
    raise ValueError(msg)


def format_ms(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO 8601 UTC string."""
    return datetime.fromtimestamp(timestamp_ms / _MS_PER_SECOND, tz=UTC).isoformat()
