"""Payout transaction lookup by signature."""

from __future__ import annotations

from typing import Any

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import TransactionMalformed, TransactionNotFound
from nosana_autostake.ledger.client import DEFAULT_COMMITMENT, LedgerClient

logger = get_logger(__name__)


class TransactionResolver:
    """
    Fetch a confirmed transaction and check it carries what extraction needs.

    A single lookup: backoff for not-yet-indexed signatures belongs to the
    ledger client (see ledger.retry.RetryingLedgerClient).
    """

    def __init__(self, ledger: LedgerClient, commitment: str = DEFAULT_COMMITMENT) -> None:
        self._ledger = ledger
        self._commitment = commitment

    async def resolve(self, signature: str) -> dict[str, Any]:
        tx = await self._ledger.get_transaction(signature, self._commitment)
        if tx is None:
            raise TransactionNotFound(signature)
        meta = tx.get("meta")
        if not isinstance(meta, dict):
            raise TransactionMalformed(f"transaction {signature} has no meta")
        if meta.get("err") is not None:
            raise TransactionMalformed(f"transaction {signature} failed on chain: {meta['err']}")
        if meta.get("innerInstructions") is None:
            raise TransactionMalformed(f"transaction {signature} has no inner instructions")
        logger.debug(
            "payout_tx_resolved",
            signature=signature,
            slot=tx.get("slot"),
            inner_groups=len(meta["innerInstructions"]),
        )
        return tx
