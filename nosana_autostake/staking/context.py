"""
Staking context — the read-only state shared by every staking cycle.

Replaces a process-wide provider: the ledger client, the authority keypair and
the program / mint ids are constructed once at startup and passed explicitly
into every component. Safe for concurrent use; nothing here is mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from nosana_autostake.ledger.client import DEFAULT_COMMITMENT, LedgerClient


@dataclass(frozen=True)
class StakingContext:
    """Ledger handle + authority + Nosana staking program / NOS mint."""

    ledger: LedgerClient
    authority: Keypair
    program_id: Pubkey
    mint: Pubkey
    commitment: str = DEFAULT_COMMITMENT
    token_account: Pubkey = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "token_account",
            get_associated_token_address(self.authority.pubkey(), self.mint),
        )

    @property
    def authority_pubkey(self) -> Pubkey:
        return self.authority.pubkey()

    @classmethod
    def create(
        cls,
        ledger: LedgerClient,
        authority: Keypair,
        program_id: str,
        mint: str,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> "StakingContext":
        """Build from base58 program id / mint strings (as found in settings)."""
        return cls(
            ledger=ledger,
            authority=authority,
            program_id=Pubkey.from_string(program_id),
            mint=Pubkey.from_string(mint),
            commitment=commitment,
        )
