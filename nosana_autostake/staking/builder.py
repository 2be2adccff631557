"""
Stake top-up transaction: build, check balance, submit, confirm.

One transaction, two instructions in fixed order:
  1. SPL token transfer  authority ATA -> vault  (amount.raw base units)
  2. Nosana staking `topup(amount)` on the stake PDA
Both are signed by the authority, so the ledger executes them as a unit: a
rejected top-up also rejects the transfer. No compensation, no resubmission.
"""

from __future__ import annotations

import asyncio
import hashlib
import struct
from typing import Any, Awaitable, Callable

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import transfer
from spl.token.models import TransferParams

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import (
    InsufficientFunds,
    LedgerRpcError,
    SubmissionRejected,
    TransactionMalformed,
)
from nosana_autostake.staking.amounts import TokenAmount
from nosana_autostake.staking.context import StakingContext

logger = get_logger(__name__)

# Anchor: instruction discriminator = first 8 bytes of sha256("global:instruction_name")
TOPUP_DISCRIMINATOR = hashlib.sha256(b"global:topup").digest()[:8]
CONFIRMED_STATUSES = ("confirmed", "finalized")
DEFAULT_CONFIRM_TIMEOUT_SEC = 60.0
DEFAULT_CONFIRM_POLL_INTERVAL_SEC = 1.0


def build_topup_instruction(
    program_id: Pubkey,
    user_token_account: Pubkey,
    vault: Pubkey,
    stake: Pubkey,
    authority: Pubkey,
    amount_raw: int,
) -> Instruction:
    """topup instruction: discriminator + u64 LE amount; accounts user, vault, stake, authority, token_program."""
    data = TOPUP_DISCRIMINATOR + struct.pack("<Q", amount_raw)
    accounts = [
        AccountMeta(pubkey=user_token_account, is_signer=False, is_writable=True),
        AccountMeta(pubkey=vault, is_signer=False, is_writable=True),
        AccountMeta(pubkey=stake, is_signer=False, is_writable=True),
        AccountMeta(pubkey=authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(program_id=program_id, data=data, accounts=accounts)


class StakeTransactionBuilder:
    """Builds and submits transfer + topup for the context's authority."""

    def __init__(
        self,
        context: StakingContext,
        *,
        confirm_timeout_sec: float = DEFAULT_CONFIRM_TIMEOUT_SEC,
        confirm_poll_interval_sec: float = DEFAULT_CONFIRM_POLL_INTERVAL_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._ctx = context
        self._confirm_timeout = confirm_timeout_sec
        self._poll_interval = confirm_poll_interval_sec
        self._sleep = sleep

    def build_instructions(
        self, amount: TokenAmount, stake: Pubkey, vault: Pubkey
    ) -> list[Instruction]:
        ctx = self._ctx
        authority = ctx.authority_pubkey
        transfer_ix = transfer(
            TransferParams(
                program_id=TOKEN_PROGRAM_ID,
                source=ctx.token_account,
                dest=vault,
                owner=authority,
                amount=amount.raw,
            )
        )
        topup_ix = build_topup_instruction(
            ctx.program_id, ctx.token_account, vault, stake, authority, amount.raw
        )
        return [transfer_ix, topup_ix]

    def build(
        self, amount: TokenAmount, stake: Pubkey, vault: Pubkey, blockhash: str
    ) -> Transaction:
        """Signed transaction, fee payer = authority."""
        return Transaction.new_signed_with_payer(
            self.build_instructions(amount, stake, vault),
            self._ctx.authority_pubkey,
            [self._ctx.authority],
            Hash.from_string(blockhash),
        )

    async def check_balance(self, amount: TokenAmount) -> int:
        """Raise InsufficientFunds unless the authority ATA holds >= amount; return the raw balance."""
        ata = str(self._ctx.token_account)
        balance = await self._ctx.ledger.get_token_account_balance(ata, self._ctx.commitment)
        if balance is None:
            raise InsufficientFunds(required=amount.raw, available=0)
        decimals = balance.get("decimals")
        if decimals is not None and decimals != amount.decimals:
            raise TransactionMalformed(
                f"payout decimals {amount.decimals} != token account decimals {decimals}"
            )
        available = int(balance.get("amount") or 0)
        if available < amount.raw:
            raise InsufficientFunds(required=amount.raw, available=available)
        return available

    async def build_and_submit(
        self, amount: TokenAmount, stake: Pubkey, vault: Pubkey
    ) -> str:
        if amount.raw <= 0:
            raise ValueError("amount to stake must be positive")
        # Balance can still change before the tx lands; the ledger then rejects it.
        await self.check_balance(amount)

        ledger = self._ctx.ledger
        blockhash = await ledger.get_latest_blockhash(self._ctx.commitment)
        tx = self.build(amount, stake, vault, blockhash)
        try:
            signature = await ledger.send_transaction(bytes(tx), self._ctx.commitment)
        except LedgerRpcError as e:
            raise SubmissionRejected(f"stake transaction rejected: {e}") from e

        logger.info(
            "stake_tx_sent",
            signature=signature,
            amount=str(amount),
            raw=amount.raw,
            stake=str(stake),
            vault=str(vault),
        )
        await self._wait_for_confirmation(signature)
        return signature

    async def _wait_for_confirmation(self, signature: str) -> None:
        """Poll signature status until confirmed/finalized; SubmissionRejected on error or timeout."""
        polls = max(1, int(self._confirm_timeout / self._poll_interval))
        for _ in range(polls):
            try:
                statuses = await self._ctx.ledger.get_signature_statuses([signature])
            except LedgerRpcError as e:
                logger.warning("stake_tx_confirm_poll_error", signature=signature, error=str(e))
                statuses = []
            st = statuses[0] if statuses else None
            if st is not None:
                if st.get("err") is not None:
                    raise SubmissionRejected(
                        f"stake transaction failed on chain: {st['err']}", signature
                    )
                if st.get("confirmationStatus") in CONFIRMED_STATUSES:
                    logger.info(
                        "stake_tx_confirmed",
                        signature=signature,
                        confirmation_status=st.get("confirmationStatus"),
                        slot=st.get("slot"),
                    )
                    return
            await self._sleep(self._poll_interval)
        raise SubmissionRejected(
            f"stake transaction not confirmed within {self._confirm_timeout}s", signature
        )
