"""Tagged fetch errors produced at the data-source boundary.

Every failure a data source can hit is translated into a ``FetchError`` with
one ``FetchErrorKind``, so the collection engine switches on a closed set of
outcomes instead of inspecting client-specific exception shapes.
"""

from enum import Enum


class FetchErrorKind(Enum):
    """Classification of a failed fetch.

    ``RATE_LIMITED`` escalates the pool's backoff. ``TRANSIENT`` covers network,
    timeout and decode failures that may succeed next cycle. ``FATAL`` marks
    failures that retrying cannot fix, such as a missing account.
    """

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


class FetchError(Exception):
    """Failure fetching data for a single pool.

    Args:
        kind: Classification used by the collector.
        msg: Human-readable description of the error.

    """

    def __init__(self, kind: FetchErrorKind, msg: str) -> None:
        """Initialize the fetch error.

        Args:
            kind: Classification used by the collector.
            msg: Human-readable description of the error.

        """
        super().__init__(f"[{kind.value}] {msg}")
        self.kind = kind
        self.msg = msg

    @property
    def is_rate_limited(self) -> bool:
        """Return whether the error signals a rate limit."""
        return self.kind is FetchErrorKind.RATE_LIMITED
