"""
Nosana Auto-Stake — reinvests Nosana node earnings into the NOS staking vault.

Watches the node's log stream for finished jobs, measures the NOS tokens paid
out by each job, and tops up the operator's stake with exactly that amount.
Modular layout: log scanner, ledger client, staking components, agent worker.
"""

__version__ = "0.1.0"
