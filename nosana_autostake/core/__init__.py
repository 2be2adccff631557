"""
Core utilities — exception taxonomy shared by the scanner, ledger client,
staking components and agent worker.
"""

from nosana_autostake.core.exceptions import (
    AccountNotFound,
    AutostakeError,
    ConfigError,
    InsufficientFunds,
    LedgerRpcError,
    StreamIOError,
    SubmissionRejected,
    TransactionMalformed,
    TransactionNotFound,
)

__all__ = [
    "AccountNotFound",
    "AutostakeError",
    "ConfigError",
    "InsufficientFunds",
    "LedgerRpcError",
    "StreamIOError",
    "SubmissionRejected",
    "TransactionMalformed",
    "TransactionNotFound",
]
