"""
Pytest fixtures for auto-stake tests. FakeLedger stands in for the Solana RPC:
dict-backed transactions / accounts / balances and a record of submitted txs.
"""

from __future__ import annotations

import base64
import struct
from typing import Any

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from nosana_autostake.staking.context import StakingContext
from nosana_autostake.staking.pda import STAKE_ACCOUNT_DISCRIMINATOR

PROGRAM_ID = "nosScmHY2uR24Zh751PmGj9ww9QRNHewh9H59AfrTJE"
NOS_MINT = "nosXBVoaCTtYdLvKY6Csb4AC8JCdQKKAaWYtx2ZMoo7"
PAYER = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
BLOCKHASH = str(Hash.default())


class FakeLedger:
    """In-memory LedgerClient. Unknown signatures/accounts behave as 'not found'."""

    def __init__(self) -> None:
        self.transactions: dict[str, Any] = {}
        self.accounts: dict[str, Any] = {}
        self.balances: dict[str, Any] = {}
        self.statuses: dict[str, Any] = {}
        self.sent: list[bytes] = []
        self.send_error: Exception | None = None
        self.next_signature = "StakeSig1111"
        self.tx_calls: list[str] = []

    async def get_transaction(self, signature, commitment="confirmed"):
        self.tx_calls.append(signature)
        return self.transactions.get(signature)

    async def get_account_info(self, address, commitment="confirmed"):
        return self.accounts.get(address)

    async def get_token_account_balance(self, address, commitment="confirmed"):
        return self.balances.get(address)

    async def get_latest_blockhash(self, commitment="confirmed"):
        return BLOCKHASH

    async def send_transaction(self, tx_bytes, commitment="confirmed"):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx_bytes)
        sig = f"{self.next_signature}{len(self.sent)}"
        self.statuses.setdefault(sig, {"slot": 1, "err": None, "confirmationStatus": "confirmed"})
        return sig

    async def get_signature_statuses(self, signatures):
        return [self.statuses.get(s) for s in signatures]


def stake_account_value(vault: Pubkey, authority: Pubkey, owner: str = PROGRAM_ID) -> dict[str, Any]:
    """getAccountInfo value for a StakeAccount referencing `vault`."""
    data = (
        STAKE_ACCOUNT_DISCRIMINATOR
        + struct.pack("<Q", 1_000_000)
        + bytes(authority)
        + struct.pack("<Q", 1_209_600)
        + struct.pack("<q", 0)
        + bytes(vault)
        + bytes([255])
        + (0).to_bytes(16, "little")
    )
    return {
        "data": [base64.b64encode(data).decode("ascii"), "base64"],
        "owner": owner,
        "lamports": 2_000_000,
        "executable": False,
    }


def payout_tx(
    destination: str,
    amounts: list[int],
    *,
    decimals: int = 6,
    checked: bool = False,
    other_destination_amounts: list[int] | None = None,
) -> dict[str, Any]:
    """jsonParsed getTransaction result crediting `amounts` to `destination` via inner spl-token transfers."""
    other = "Other1111111111111111111111111111111111111"
    instructions: list[dict[str, Any]] = []
    for dest, amt in [(destination, a) for a in amounts] + [
        (other, a) for a in (other_destination_amounts or [])
    ]:
        if checked:
            parsed = {
                "type": "transferChecked",
                "info": {
                    "source": PAYER,
                    "destination": dest,
                    "mint": NOS_MINT,
                    "authority": PAYER,
                    "tokenAmount": {"amount": str(amt), "decimals": decimals},
                },
            }
        else:
            parsed = {
                "type": "transfer",
                "info": {"source": PAYER, "destination": dest, "authority": PAYER, "amount": str(amt)},
            }
        instructions.append({"program": "spl-token", "programId": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA", "parsed": parsed})
    return {
        "slot": 123,
        "transaction": {
            "signatures": ["payout"],
            "message": {
                "accountKeys": [
                    {"pubkey": PAYER, "signer": True, "writable": True},
                    {"pubkey": destination, "signer": False, "writable": True},
                ]
            },
        },
        "meta": {
            "err": None,
            "innerInstructions": [{"index": 0, "instructions": instructions}],
            "postTokenBalances": [
                {
                    "accountIndex": 1,
                    "mint": NOS_MINT,
                    "uiTokenAmount": {"amount": "0", "decimals": decimals},
                }
            ],
        },
    }


@pytest.fixture
def authority() -> Keypair:
    return Keypair()


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def staking_ctx(fake_ledger, authority) -> StakingContext:
    return StakingContext.create(fake_ledger, authority, PROGRAM_ID, NOS_MINT)


@pytest.fixture
def vault() -> Pubkey:
    return Pubkey.new_unique()


@pytest.fixture
def bootstrapped_ledger(fake_ledger, staking_ctx, vault) -> FakeLedger:
    """Ledger with the authority's stake account (pointing at `vault`) and a funded ATA."""
    from nosana_autostake.staking.pda import PDAResolver

    stake = PDAResolver(fake_ledger, staking_ctx.program_id).derive(
        staking_ctx.authority_pubkey, staking_ctx.mint
    )
    fake_ledger.accounts[str(stake)] = stake_account_value(vault, staking_ctx.authority_pubkey)
    fake_ledger.balances[str(staking_ctx.token_account)] = {
        "amount": "100000000",
        "decimals": 6,
        "uiAmountString": "100",
    }
    return fake_ledger
