"""Async HTTP client for the Solana JSON-RPC API."""

import asyncio
import base64
import itertools
import logging
from collections.abc import Callable
from typing import Any

import httpx

from whirlpool_monitor.clients.solana.exceptions import (
    SolanaRateLimitError,
    SolanaRPCError,
    looks_rate_limited,
)

logger = logging.getLogger(__name__)

_HTTP_BAD_REQUEST = 400
_HTTP_TOO_MANY_REQUESTS = 429
_DEFAULT_COMMITMENT = "confirmed"


class SolanaRPCClient:
    """HTTP client for read-only Solana JSON-RPC methods.

    Only transport failures (connection resets, timeouts) are retried, a
    fixed number of times within a single call. Rate limits and node errors
    are raised immediately so the caller can decide how to back off.

    Args:
        rpc_url: JSON-RPC endpoint.
        timeout: Request timeout in seconds.
        max_retries: Extra attempts after a transport failure.
        retry_delay: Seconds to wait between transport retries.
        rate_limit_predicate: Decides whether a JSON-RPC error body is a
            rate limit. Receives the error code and message.

    """

    MAINNET_URL = "https://api.mainnet-beta.solana.com"

    def __init__(
        self,
        rpc_url: str = MAINNET_URL,
        timeout: float = 60.0,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        rate_limit_predicate: Callable[[int, str], bool] = looks_rate_limited,
    ) -> None:
        """Initialize the Solana RPC client.

        Args:
            rpc_url: JSON-RPC endpoint.
            timeout: Request timeout in seconds.
            max_retries: Extra attempts after a transport failure.
            retry_delay: Seconds to wait between transport retries.
            rate_limit_predicate: Classifies JSON-RPC error bodies as rate limits.

        """
        self.rpc_url = rpc_url.rstrip("/")
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._is_rate_limited = rate_limit_predicate
        self._ids = itertools.count(1)
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Send a JSON-RPC request and return its ``result`` member.

        Args:
            method: RPC method name (e.g. ``getAccountInfo``).
            params: Positional RPC parameters.

        Returns:
            The decoded ``result`` value.

        Raises:
            SolanaRateLimitError: On HTTP 429 or a rate-limit error body.
            SolanaRPCError: On any other HTTP or JSON-RPC error.
            httpx.TransportError: When every transport attempt failed.

        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        response = await self._post_with_retry(payload)

        if response.status_code >= _HTTP_BAD_REQUEST:
            self._handle_http_error(response)

        body: dict[str, Any] = response.json()
        error = body.get("error")
        if error:
            code = int(error.get("code", 0))
            msg = str(error.get("message", "Unknown RPC error"))
            if self._is_rate_limited(code, msg):
                raise SolanaRateLimitError(code=code, msg=msg)
            raise SolanaRPCError(code=code, msg=msg)
        return body.get("result")

    async def _post_with_retry(self, payload: dict[str, Any]) -> httpx.Response:
        """POST the payload, retrying transport failures only."""
        attempt = 0
        while True:
            try:
                return await self._http_client.post(self.rpc_url, json=payload)
            except httpx.TransportError as exc:
                attempt += 1
                if attempt > self._max_retries:
                    raise
                logger.debug(
                    "%s transport error (%s), retry %d/%d",
                    payload["method"],
                    exc,
                    attempt,
                    self._max_retries,
                )
                await asyncio.sleep(self._retry_delay)

    @staticmethod
    def _handle_http_error(response: httpx.Response) -> None:
        """Raise the matching exception for a non-2xx response.

        Args:
            response: HTTP response with an error status code.

        Raises:
            SolanaRateLimitError: For 429 responses.
            SolanaRPCError: For every other error status.

        """
        msg = response.text.strip() or f"HTTP {response.status_code}"
        if response.status_code == _HTTP_TOO_MANY_REQUESTS:
            raise SolanaRateLimitError(code=response.status_code, msg=msg)
        raise SolanaRPCError(code=response.status_code, msg=msg)

    async def get_account_info(self, address: str) -> bytes | None:
        """Fetch the raw data of a single account.

        Args:
            address: Base58 account address.

        Returns:
            The account data, or ``None`` when the account does not exist.

        """
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": _DEFAULT_COMMITMENT}],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        return _decode_data(value["data"])

    async def get_program_accounts(
        self,
        program_id: str,
        filters: list[dict[str, Any]] | None = None,
    ) -> list[tuple[str, bytes]]:
        """Fetch every account owned by a program that matches the filters.

        Args:
            program_id: Base58 program address.
            filters: ``dataSize`` / ``memcmp`` filter objects.

        Returns:
            ``(pubkey, data)`` pairs.

        """
        config: dict[str, Any] = {"encoding": "base64", "commitment": _DEFAULT_COMMITMENT}
        if filters:
            config["filters"] = filters
        result = await self.call("getProgramAccounts", [program_id, config])
        return [(str(item["pubkey"]), _decode_data(item["account"]["data"])) for item in result or []]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "SolanaRPCClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()


def _decode_data(data: Any) -> bytes:
    """Decode an account ``data`` field returned with base64 encoding.

    Args:
        data: ``[payload, "base64"]`` as returned by the node.

    Returns:
        Raw account bytes.

    Raises:
        ValueError: If the field is not base64-encoded account data.

    """
    if not isinstance(data, list) or len(data) != 2 or data[1] != "base64":  # noqa: PLR2004
        msg = f"Unexpected account data encoding: {data!r:.80}"
        raise ValueError(msg)
    return base64.b64decode(data[0])
