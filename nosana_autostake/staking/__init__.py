"""
Staking package: PDA/vault resolution, payout lookup, amount extraction,
and the transfer + topup transaction builder.
"""

from nosana_autostake.staking.amounts import AmountExtractor, TokenAmount
from nosana_autostake.staking.builder import StakeTransactionBuilder
from nosana_autostake.staking.context import StakingContext
from nosana_autostake.staking.pda import PDAResolver, StakeAddresses
from nosana_autostake.staking.resolver import TransactionResolver

__all__ = [
    "AmountExtractor",
    "PDAResolver",
    "StakeAddresses",
    "StakeTransactionBuilder",
    "StakingContext",
    "TokenAmount",
    "TransactionResolver",
]
