"""
Solana ledger access package.

LedgerClient is the async capability interface consumed by the staking core;
HttpLedgerClient talks JSON-RPC over httpx; RetryingLedgerClient adds backoff
for transactions that are not indexed yet.
"""

from nosana_autostake.ledger.client import (
    DEFAULT_COMMITMENT,
    HttpLedgerClient,
    LedgerClient,
)
from nosana_autostake.ledger.retry import RetryingLedgerClient

__all__ = [
    "DEFAULT_COMMITMENT",
    "HttpLedgerClient",
    "LedgerClient",
    "RetryingLedgerClient",
]
