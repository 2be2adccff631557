"""
Application-level exceptions.

Every staking cycle failure maps to exactly one of these classes; the class
name is used as the `reason` of the `staking_failed` audit event. Only
StreamIOError (and ConfigError at startup) is fatal to the whole process.
"""

from __future__ import annotations


class AutostakeError(Exception):
    """Base class for all auto-stake errors."""

    @property
    def reason(self) -> str:
        return type(self).__name__


class ConfigError(AutostakeError):
    """Invalid or missing configuration (key file, program id, RPC URL)."""


class StreamIOError(AutostakeError):
    """The node log stream broke; terminates the pipeline."""


class LedgerRpcError(AutostakeError):
    """Transport failure or JSON-RPC error response from the Solana node."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class AccountNotFound(AutostakeError):
    """Stake account PDA (or the token account) does not exist on chain."""

    def __init__(self, address: str, detail: str = "account not found") -> None:
        super().__init__(f"{detail}: {address}")
        self.address = address


class TransactionNotFound(AutostakeError):
    """The ledger has no confirmed transaction for the signature (yet)."""

    def __init__(self, signature: str) -> None:
        super().__init__(f"transaction not found: {signature}")
        self.signature = signature


class TransactionMalformed(AutostakeError):
    """Transaction record lacks meta / inner instructions / decimals, or failed on chain."""


class InsufficientFunds(AutostakeError):
    """Authority token account holds less than the amount to stake."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"insufficient funds: required={required} available={available}")
        self.required = required
        self.available = available


class SubmissionRejected(AutostakeError):
    """Stake transaction was rejected (preflight, on-chain error, or confirmation timeout)."""

    def __init__(self, message: str, signature: str | None = None) -> None:
        super().__init__(message)
        self.signature = signature
