"""Exceptions for the Solana JSON-RPC client."""

_RATE_LIMIT_MARKERS = ("rate limit", "too many requests")


class SolanaError(Exception):
    """Base exception for Solana client errors."""


class SolanaRPCError(SolanaError):
    """Error returned by a Solana RPC node.

    Carry either the HTTP status code (for transport-level rejections) or the
    JSON-RPC error code from the response body.

    Args:
        code: HTTP status or JSON-RPC error code.
        msg: Human-readable message from the node.

    """

    def __init__(self, code: int, msg: str) -> None:
        """Initialize the RPC error.

        Args:
            code: HTTP status or JSON-RPC error code.
            msg: Human-readable message from the node.

        """
        super().__init__(f"[{code}] {msg}")
        self.code = code
        self.msg = msg


class SolanaRateLimitError(SolanaRPCError):
    """Rate limit exceeded (HTTP 429 or an equivalent JSON-RPC error)."""


def looks_rate_limited(code: int, msg: str) -> bool:
    """Return whether a JSON-RPC error body describes a rate limit.

    Some providers answer HTTP 200 with a JSON-RPC error instead of a 429.

    Args:
        code: JSON-RPC error code.
        msg: Error message from the node.

    Returns:
        ``True`` when the code or message indicates throttling.

    """
    if code == 429:  # noqa: PLR2004
        return True
    lowered = msg.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)
