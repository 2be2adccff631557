"""
Environment variable loading for Nosana Auto-Stake.

- SOLANA_RPC_URL: RPC endpoint (default: mainnet-beta public RPC)
- SOLANA_NETWORK: devnet | mainnet (only used when SOLANA_RPC_URL is unset)
- NOSANA_STAKING_PROGRAM_ID: Nosana staking program
- NOSANA_MINT: NOS token mint
- NOSANA_KEY_PATH: node keypair file (default ~/.nosana/nosana_key.json)
- NOSANA_NODE_CONTAINER: docker container running the node (default nosana-node)
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is nosana_autostake/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_STAKING_PROGRAM_ID = "nosScmHY2uR24Zh751PmGj9ww9QRNHewh9H59AfrTJE"
DEFAULT_NOS_MINT = "nosXBVoaCTtYdLvKY6Csb4AC8JCdQKKAaWYtx2ZMoo7"
DEFAULT_NODE_CONTAINER = "nosana-node"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"


def load_autostake_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def parse_bool_env(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


def get_solana_network() -> str:
    """Return SOLANA_NETWORK from env: devnet | mainnet. Default: mainnet (Nosana runs on mainnet)."""
    load_autostake_env()
    raw = (os.getenv("SOLANA_NETWORK") or os.getenv("SOLANA_CLUSTER") or "mainnet").strip().lower()
    return "devnet" if raw == "devnet" else "mainnet"


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > devnet/mainnet default.
    """
    load_autostake_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    return DEVNET_RPC_URL if get_solana_network() == "devnet" else MAINNET_RPC_URL


def get_staking_program_id() -> str:
    load_autostake_env()
    return (os.getenv("NOSANA_STAKING_PROGRAM_ID") or "").strip() or DEFAULT_STAKING_PROGRAM_ID


def get_nos_mint() -> str:
    load_autostake_env()
    return (os.getenv("NOSANA_MINT") or "").strip() or DEFAULT_NOS_MINT


def get_key_path() -> Path:
    """Return the node keypair path; NOSANA_KEY_PATH overrides ~/.nosana/nosana_key.json."""
    load_autostake_env()
    raw = (os.getenv("NOSANA_KEY_PATH") or "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".nosana" / "nosana_key.json"


def get_node_container() -> str:
    load_autostake_env()
    return (os.getenv("NOSANA_NODE_CONTAINER") or "").strip() or DEFAULT_NODE_CONTAINER


def masked_rpc_url(rpc: str) -> str:
    """Mask API key in an RPC URL for logging."""
    if "api-key=" in rpc:
        return rpc.split("api-key=")[0] + "api-key=***"
    return rpc
