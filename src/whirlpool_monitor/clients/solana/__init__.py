"""Solana JSON-RPC client."""

from whirlpool_monitor.clients.solana.client import SolanaRPCClient
from whirlpool_monitor.clients.solana.exceptions import (
    SolanaError,
    SolanaRateLimitError,
    SolanaRPCError,
)

__all__ = [
    "SolanaError",
    "SolanaRPCClient",
    "SolanaRPCError",
    "SolanaRateLimitError",
]
