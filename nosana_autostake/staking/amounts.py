"""
Token amounts and payout extraction.

TokenAmount keeps the raw integer amount and the mint's decimal exponent;
whole-token values are exact Decimals, never binary floats. Summing credits is
done on raw integers, so the result does not depend on instruction order.

AmountExtractor walks a jsonParsed transaction's inner instructions and sums
the SPL token transfers credited to one destination token account.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import TransactionMalformed

logger = get_logger(__name__)

SPL_TOKEN_PROGRAM = "spl-token"
TRANSFER_TYPES = ("transfer", "transferChecked")
# NOS has 6 decimals; only used to label a zero amount when the tx carries no balance metadata
DEFAULT_DECIMALS = 6


@dataclass(frozen=True)
class TokenAmount:
    """Non-negative token amount: raw base units + decimal exponent."""

    raw: int
    decimals: int = DEFAULT_DECIMALS

    def __post_init__(self) -> None:
        if self.raw < 0:
            raise ValueError("token amount must be non-negative")
        if self.decimals < 0:
            raise ValueError("decimals must be non-negative")

    @property
    def ui(self) -> Decimal:
        """Whole tokens (raw / 10**decimals), exact."""
        return Decimal(self.raw).scaleb(-self.decimals)

    @property
    def is_zero(self) -> bool:
        return self.raw == 0

    @classmethod
    def from_ui(cls, value: Decimal | str | int, decimals: int = DEFAULT_DECIMALS) -> "TokenAmount":
        """Build from whole tokens; rejects values finer than the mint's precision."""
        scaled = Decimal(value).scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{value} has more than {decimals} decimal places")
        return cls(raw=int(scaled), decimals=decimals)

    def __add__(self, other: "TokenAmount") -> "TokenAmount":
        if not isinstance(other, TokenAmount):
            return NotImplemented
        if other.decimals != self.decimals:
            raise ValueError("cannot add amounts with different decimals")
        return TokenAmount(raw=self.raw + other.raw, decimals=self.decimals)

    def __str__(self) -> str:
        return f"{self.ui:f}"


def _account_keys(tx: dict[str, Any]) -> list[str]:
    """accountKeys as base58 strings (jsonParsed gives dicts, json gives strings)."""
    message = ((tx.get("transaction") or {}).get("message")) or {}
    keys = message.get("accountKeys") or []
    out: list[str] = []
    for k in keys:
        if isinstance(k, str):
            out.append(k)
        elif isinstance(k, dict):
            out.append(k.get("pubkey", ""))
    return out


def _iter_parsed_inner(meta: dict[str, Any]) -> Iterator[dict[str, Any]]:
    for group in meta.get("innerInstructions") or []:
        for ix in group.get("instructions") or []:
            parsed = ix.get("parsed")
            if ix.get("program") != SPL_TOKEN_PROGRAM or not isinstance(parsed, dict):
                continue
            if parsed.get("type") not in TRANSFER_TYPES:
                continue
            yield parsed.get("info") or {}


def _raw_amount(info: dict[str, Any]) -> int:
    raw = info.get("amount")
    if raw is None:
        raw = (info.get("tokenAmount") or {}).get("amount")
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise TransactionMalformed(f"transfer has no integer amount: {raw!r}") from e


class AmountExtractor:
    """
    Sum token credits to a destination account in a resolved transaction.

    `mint` (base58) is used to pick the right postTokenBalances entry when the
    destination's own entry is missing.
    """

    def __init__(self, mint: str | None = None) -> None:
        self._mint = mint

    def decimals_for(self, tx: dict[str, Any], destination: str) -> int | None:
        """
        Decimal exponent from postTokenBalances: destination's entry, then the
        configured mint's entry, then the first entry.
        """
        meta = tx.get("meta") or {}
        balances = [b for b in meta.get("postTokenBalances") or [] if isinstance(b, dict)]
        if not balances:
            return None
        keys = _account_keys(tx)
        by_dest = [
            b for b in balances
            if isinstance(b.get("accountIndex"), int)
            and 0 <= b["accountIndex"] < len(keys)
            and keys[b["accountIndex"]] == destination
        ]
        by_mint = [b for b in balances if self._mint and b.get("mint") == self._mint]
        for entry in (by_dest or by_mint or balances)[:1]:
            decimals = (entry.get("uiTokenAmount") or {}).get("decimals")
            if isinstance(decimals, int):
                return decimals
        return None

    def extract(self, tx: dict[str, Any], destination: str) -> TokenAmount:
        """
        Return the total credited to `destination`; TokenAmount(0) when nothing matches.

        Raises TransactionMalformed if the tx has no meta, or credits exist but
        their decimals cannot be determined or disagree.
        """
        meta = tx.get("meta")
        if not isinstance(meta, dict):
            raise TransactionMalformed("transaction has no meta")

        tx_decimals = self.decimals_for(tx, destination)
        total_raw = 0
        decimals: int | None = None
        matches = 0
        for info in _iter_parsed_inner(meta):
            if info.get("destination") != destination:
                continue
            ix_decimals = (info.get("tokenAmount") or {}).get("decimals", tx_decimals)
            if ix_decimals is None:
                raise TransactionMalformed("token transfer without decimal metadata")
            if decimals is not None and ix_decimals != decimals:
                raise TransactionMalformed(
                    f"credits with mixed decimals: {decimals} and {ix_decimals}"
                )
            decimals = ix_decimals
            total_raw += _raw_amount(info)
            matches += 1

        if decimals is None:
            decimals = tx_decimals if tx_decimals is not None else DEFAULT_DECIMALS
        amount = TokenAmount(raw=total_raw, decimals=decimals)
        logger.debug(
            "payout_amount_extracted",
            destination=destination,
            credits=matches,
            raw=total_raw,
            amount=str(amount),
        )
        return amount
