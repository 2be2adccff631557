"""Node authority keypair loading (Solana CLI JSON format: array of 64 byte values)."""

from __future__ import annotations

import json
from pathlib import Path

from solders.keypair import Keypair

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import ConfigError

logger = get_logger(__name__)

SECRET_KEY_LEN = 64


def load_authority(path: str | Path) -> Keypair:
    """Load the node keypair; ConfigError if missing or not 64 bytes."""
    key_path = Path(path).expanduser()
    if not key_path.is_file():
        raise ConfigError(f"Key file not found: {key_path}")
    try:
        arr = json.loads(key_path.read_text(encoding="utf-8"))
        secret = bytes(arr)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        raise ConfigError(f"Key file is not a JSON byte array: {key_path}") from e
    if len(secret) != SECRET_KEY_LEN:
        raise ConfigError(f"Key file must hold {SECRET_KEY_LEN} bytes, got {len(secret)}")
    try:
        keypair = Keypair.from_bytes(secret)
    except Exception as e:
        raise ConfigError(f"Invalid keypair in {key_path}: {e}") from e
    logger.info("authority_loaded", authority=str(keypair.pubkey()), key_path=str(key_path))
    return keypair
