"""
Application settings.

AutostakeSettings collects every tunable of the agent (RPC endpoint, program
ids, key path, retry and confirmation timings, log buffer bound). Defaults come
from the environment (see config.env); explicit keyword arguments win.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from nosana_autostake.config.env import (
    get_key_path,
    get_node_container,
    get_nos_mint,
    get_solana_rpc_url,
    get_staking_program_id,
)
from nosana_autostake.core.exceptions import ConfigError

DEFAULT_RESOLVE_ATTEMPTS = 5
DEFAULT_RESOLVE_BACKOFF_SEC = 2.0
DEFAULT_RESOLVE_MAX_BACKOFF_SEC = 30.0
DEFAULT_CONFIRM_TIMEOUT_SEC = 60.0
DEFAULT_CONFIRM_POLL_INTERVAL_SEC = 1.0
DEFAULT_RPC_TIMEOUT_SEC = 30.0
DEFAULT_LOG_MAX_BUFFER_BYTES = 5 * 1024 * 1024


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class AutostakeSettings:
    """Config for the auto-stake agent (env or explicit)."""

    rpc_url: str = field(default_factory=get_solana_rpc_url)
    staking_program_id: str = field(default_factory=get_staking_program_id)
    nos_mint: str = field(default_factory=get_nos_mint)
    key_path: Path = field(default_factory=get_key_path)
    node_container: str = field(default_factory=get_node_container)
    resolve_attempts: int = field(default_factory=lambda: _env_int("RESOLVE_ATTEMPTS", DEFAULT_RESOLVE_ATTEMPTS))
    resolve_backoff_sec: float = field(default_factory=lambda: _env_float("RESOLVE_BACKOFF_SEC", DEFAULT_RESOLVE_BACKOFF_SEC))
    resolve_max_backoff_sec: float = DEFAULT_RESOLVE_MAX_BACKOFF_SEC
    confirm_timeout_sec: float = field(default_factory=lambda: _env_float("CONFIRM_TIMEOUT_SEC", DEFAULT_CONFIRM_TIMEOUT_SEC))
    confirm_poll_interval_sec: float = field(default_factory=lambda: _env_float("CONFIRM_POLL_INTERVAL_SEC", DEFAULT_CONFIRM_POLL_INTERVAL_SEC))
    rpc_timeout_sec: float = field(default_factory=lambda: _env_float("RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC))
    log_max_buffer_bytes: int = field(default_factory=lambda: _env_int("LOG_MAX_BUFFER_BYTES", DEFAULT_LOG_MAX_BUFFER_BYTES))

    def __post_init__(self) -> None:
        self.rpc_url = self.rpc_url.strip()
        if not self.rpc_url.startswith(("http://", "https://")):
            raise ConfigError(f"rpc_url must be an http(s) URL, got {self.rpc_url!r}")
        self.key_path = Path(self.key_path).expanduser()
        if self.resolve_attempts < 1:
            raise ConfigError("resolve_attempts must be >= 1")
        if self.resolve_backoff_sec < 0:
            raise ConfigError("resolve_backoff_sec must be >= 0")
        if self.resolve_max_backoff_sec < self.resolve_backoff_sec:
            raise ConfigError("resolve_max_backoff_sec must be >= resolve_backoff_sec")
        if self.confirm_timeout_sec <= 0:
            raise ConfigError("confirm_timeout_sec must be positive")
        if self.confirm_poll_interval_sec <= 0:
            raise ConfigError("confirm_poll_interval_sec must be positive")
        if self.rpc_timeout_sec <= 0:
            raise ConfigError("rpc_timeout_sec must be positive")
        if self.log_max_buffer_bytes < 1024:
            raise ConfigError("log_max_buffer_bytes must be at least 1024")


def get_settings(**overrides: object) -> AutostakeSettings:
    """
    Return the current application settings.

    Keyword overrides (e.g. rpc_url=..., key_path=...) take precedence over env;
    None values are ignored so argparse namespaces can be passed through.
    """
    kwargs = {k: v for k, v in overrides.items() if v is not None}
    return AutostakeSettings(**kwargs)  # type: ignore[arg-type]
