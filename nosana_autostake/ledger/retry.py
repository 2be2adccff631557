"""
Retry decorator for LedgerClient.

The job-finished log line is printed as soon as the node sees its payout, which
can be before the RPC node has indexed the transaction at `confirmed`. Wraps
get_transaction with bounded exponential backoff while the result is None.
All other calls are delegated unchanged; submissions are never retried.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.ledger.client import DEFAULT_COMMITMENT, LedgerClient

logger = get_logger(__name__)


class RetryingLedgerClient:
    """LedgerClient that retries not-yet-indexed transaction lookups."""

    def __init__(
        self,
        inner: LedgerClient,
        *,
        attempts: int = 5,
        min_delay_sec: float = 2.0,
        max_delay_sec: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self._inner = inner
        self._attempts = attempts
        self._min_delay = min_delay_sec
        self._max_delay = max_delay_sec
        self._sleep = sleep

    @property
    def inner(self) -> LedgerClient:
        return self._inner

    async def get_transaction(
        self, signature: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None:
        delay = self._min_delay
        for attempt in range(self._attempts):
            tx = await self._inner.get_transaction(signature, commitment)
            if tx is not None:
                return tx
            if attempt + 1 >= self._attempts:
                break
            logger.info(
                "ledger_tx_not_indexed_retry",
                signature=signature,
                attempt=attempt + 1,
                max_attempts=self._attempts,
                backoff_sec=round(delay, 1),
            )
            await self._sleep(delay)
            delay = min(delay * 2, self._max_delay)
        logger.warning(
            "ledger_tx_not_found_give_up",
            signature=signature,
            max_attempts=self._attempts,
        )
        return None

    async def get_account_info(
        self, address: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None:
        return await self._inner.get_account_info(address, commitment)

    async def get_token_account_balance(
        self, address: str, commitment: str = DEFAULT_COMMITMENT
    ) -> dict[str, Any] | None:
        return await self._inner.get_token_account_balance(address, commitment)

    async def get_latest_blockhash(self, commitment: str = DEFAULT_COMMITMENT) -> str:
        return await self._inner.get_latest_blockhash(commitment)

    async def send_transaction(
        self, tx_bytes: bytes, commitment: str = DEFAULT_COMMITMENT
    ) -> str:
        return await self._inner.send_transaction(tx_bytes, commitment)

    async def get_signature_statuses(
        self, signatures: list[str]
    ) -> list[dict[str, Any] | None]:
        return await self._inner.get_signature_statuses(signatures)
