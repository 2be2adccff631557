"""
Stake account PDA derivation and vault lookup.

The stake account is a PDA of the Nosana staking program with seeds
[b"stake", mint, authority] (in that order). The vault is not derived: it is
read from the stake account's on-chain data. Staking must have been set up
out-of-band; a missing stake account is an AccountNotFound.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Any

from solders.pubkey import Pubkey

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import AccountNotFound
from nosana_autostake.ledger.client import DEFAULT_COMMITMENT, LedgerClient

logger = get_logger(__name__)

STAKE_SEED = b"stake"
# Anchor: account discriminator = first 8 bytes of sha256("account:<AccountName>")
STAKE_ACCOUNT_DISCRIMINATOR = hashlib.sha256(b"account:StakeAccount").digest()[:8]

# StakeAccount layout: 8 discriminator + 8 amount + 32 authority + 8 duration + 8 time_unstake
# + 32 vault + 1 vault_bump + 16 xnos
STAKE_ACCOUNT_DISCRIMINATOR_LEN = 8
STAKE_ACCOUNT_AMOUNT_OFFSET = STAKE_ACCOUNT_DISCRIMINATOR_LEN  # 8
STAKE_ACCOUNT_AUTHORITY_OFFSET = STAKE_ACCOUNT_AMOUNT_OFFSET + 8  # 16
STAKE_ACCOUNT_VAULT_OFFSET = STAKE_ACCOUNT_AUTHORITY_OFFSET + 32 + 8 + 8  # 64
STAKE_ACCOUNT_MIN_LEN = STAKE_ACCOUNT_VAULT_OFFSET + 32


@dataclass(frozen=True)
class StakeAddresses:
    """Stake PDA and the vault it references, resolved for one cycle."""

    stake: Pubkey
    vault: Pubkey


def _account_data_bytes(account: dict[str, Any]) -> bytes:
    """Normalize getAccountInfo value.data (["<b64>", "base64"] or b64 string) to bytes."""
    raw = account.get("data")
    if isinstance(raw, (list, tuple)) and raw:
        raw = raw[0]
    if isinstance(raw, str):
        return base64.b64decode(raw)
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    return b""


def parse_stake_account_vault(data: bytes) -> Pubkey | None:
    """Return the vault pubkey from StakeAccount data, or None if the data is not a StakeAccount."""
    if len(data) < STAKE_ACCOUNT_MIN_LEN:
        return None
    if data[:STAKE_ACCOUNT_DISCRIMINATOR_LEN] != STAKE_ACCOUNT_DISCRIMINATOR:
        return None
    return Pubkey.from_bytes(
        data[STAKE_ACCOUNT_VAULT_OFFSET:STAKE_ACCOUNT_VAULT_OFFSET + 32]
    )


class PDAResolver:
    """Derives the stake PDA and reads its vault from chain state."""

    def __init__(
        self,
        ledger: LedgerClient,
        program_id: Pubkey,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> None:
        self._ledger = ledger
        self._program_id = program_id
        self._commitment = commitment

    def derive(self, authority: Pubkey, mint: Pubkey) -> Pubkey:
        """Stake PDA for (authority, mint). Pure; same input always gives the same address."""
        pda, _bump = Pubkey.find_program_address(
            [STAKE_SEED, bytes(mint), bytes(authority)],
            self._program_id,
        )
        return pda

    async def resolve(self, authority: Pubkey, mint: Pubkey) -> StakeAddresses:
        stake = self.derive(authority, mint)
        logger.debug("stake_pda_derived", stake=str(stake), authority=str(authority))

        account = await self._ledger.get_account_info(str(stake), self._commitment)
        if not account:
            raise AccountNotFound(str(stake), "stake account not found")
        owner = account.get("owner")
        if owner is not None and owner != str(self._program_id):
            raise AccountNotFound(str(stake), f"stake account owned by {owner}")
        vault = parse_stake_account_vault(_account_data_bytes(account))
        if vault is None:
            raise AccountNotFound(str(stake), "account is not a stake account")

        logger.info("stake_vault_resolved", stake=str(stake), vault=str(vault))
        return StakeAddresses(stake=stake, vault=vault)
