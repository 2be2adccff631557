"""
Solana ledger client — the capability interface the staking core talks to.

Responsibilities:
- Define LedgerClient, the async read/write surface the core consumes
  (transaction lookup, account lookup, token balance, blockhash, submit, status).
- Implement it as Solana JSON-RPC over httpx.AsyncClient (HttpLedgerClient).
- Map transport failures and JSON-RPC error responses to LedgerRpcError;
  map "not found" results to None so callers decide what absence means.
"""

from __future__ import annotations

import base64
import itertools
from typing import Any, Protocol

import httpx

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import LedgerRpcError

logger = get_logger(__name__)

DEFAULT_COMMITMENT = "confirmed"
# JSON-RPC "invalid params", returned by getTokenAccountBalance for unknown accounts
RPC_INVALID_PARAMS = -32602


class LedgerClient(Protocol):
    """Async Solana ledger operations used by the staking pipeline."""

    async def get_transaction(
        self, signature: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None: ...

    async def get_account_info(
        self, address: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None: ...

    async def get_token_account_balance(
        self, address: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None: ...

    async def get_latest_blockhash(self, commitment: str = DEFAULT_COMMITMENT) -> str: ...

    async def send_transaction(
        self, tx_bytes: bytes, commitment: str = DEFAULT_COMMITMENT
    ) -> str: ...

    async def get_signature_statuses(
        self, signatures: list[str]
    ) -> list[dict[str, Any] | None]: ...


class HttpLedgerClient:
    """
    LedgerClient over Solana JSON-RPC (HTTP POST) using one shared httpx.AsyncClient.

    Safe for concurrent use by multiple staking cycles; holds no per-request state
    beyond the request id counter.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        request_timeout_sec: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip().rstrip("/")
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout_sec),
            transport=transport,
        )

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def __aenter__(self) -> "HttpLedgerClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC call; raise LedgerRpcError on transport or RPC error."""
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            resp = await self._client.post(self._rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            logger.warning("ledger_rpc_transport_error", method=method, error=str(e))
            raise LedgerRpcError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise LedgerRpcError(f"{method} returned invalid JSON: {e}") from e
        if "error" in data:
            err = data["error"] or {}
            raise LedgerRpcError(
                f"Solana RPC error in {method}: {err.get('message', err)}",
                code=err.get("code"),
            )
        return data.get("result")

    async def get_transaction(
        self, signature: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None:
        """getTransaction in jsonParsed encoding; None if the ledger has no record."""
        return await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    async def get_account_info(
        self, address: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None:
        """getAccountInfo (base64); returns the `value` object or None."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": commitment}],
        )
        return (result or {}).get("value")

    async def get_token_account_balance(
        self, address: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None:
        """getTokenAccountBalance `value` ({amount, decimals, uiAmountString}); None if absent."""
        try:
            result = await self._call(
                "getTokenAccountBalance", [address, {"commitment": commitment}]
            )
        except LedgerRpcError as e:
            if e.code == RPC_INVALID_PARAMS:
                return None
            raise
        return (result or {}).get("value")

    async def get_latest_blockhash(self, commitment: str = DEFAULT_COMMITMENT) -> str:
        result = await self._call("getLatestBlockhash", [{"commitment": commitment}])
        blockhash = ((result or {}).get("value") or {}).get("blockhash")
        if not blockhash:
            raise LedgerRpcError("getLatestBlockhash returned no blockhash")
        return blockhash

    async def send_transaction(
        self, tx_bytes: bytes, commitment: str = DEFAULT_COMMITMENT
    ) -> str:
        """sendTransaction (base64, preflight at commitment); returns the signature."""
        result = await self._call(
            "sendTransaction",
            [
                base64.b64encode(tx_bytes).decode("ascii"),
                {"encoding": "base64", "preflightCommitment": commitment},
            ],
        )
        if not result:
            raise LedgerRpcError("sendTransaction returned no signature")
        return str(result)

    async def get_signature_statuses(
        self, signatures: list[str]
    ) -> list[dict[str, Any] | None]:
        result = await self._call("getSignatureStatuses", [signatures])
        return list((result or {}).get("value") or [])
