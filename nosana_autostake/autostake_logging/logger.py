"""
Structured logging for the auto-stake agent.

Every record is one JSON object on stdout (LOG_FORMAT=json, the default) or a
colored console line on stderr (LOG_FORMAT=console). The first positional
argument of a log call is the event type:

    logger = get_logger(__name__)
    logger.info("staking_succeeded", job_signature=sig, amount="12.500000")

    {"event_type": "staking_succeeded", "job_signature": "...", "amount": "12.500000",
     "level": "info", "logger": "nosana_autostake.agent_worker.pipeline",
     "timestamp": "2026-01-01T00:00:00.000000Z"}

Query strings of *_url / rpc fields are masked (RPC providers put API keys
there) and key material fields are never rendered.

No nosana_autostake imports here; every other module imports this one.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional, TextIO

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

_SECRET_FIELDS = frozenset({"secret_key", "private_key", "keypair_bytes"})
_REDACTED = "***"


def _mask_url(value: str) -> str:
    base, sep, query = value.partition("?")
    if not sep:
        return value
    masked = "&".join(
        f"{part.split('=', 1)[0]}={_REDACTED}" if "=" in part else part
        for part in query.split("&")
    )
    return f"{base}?{masked}"


def _redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop key material and mask URL query strings."""
    for key in list(event_dict):
        if key in _SECRET_FIELDS:
            event_dict[key] = _REDACTED
        elif (key == "rpc" or key.endswith("_url")) and isinstance(event_dict[key], str):
            event_dict[key] = _mask_url(event_dict[key])
    return event_dict


def _processors(fmt: str) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_secrets,
        structlog.processors.format_exc_info,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.EventRenamer("event_type"))
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    return processors


def configure_structlog(
    level: str = LOG_LEVEL,
    fmt: str = LOG_FORMAT,
    stream: Optional[TextIO] = None,
) -> None:
    """(Re)configure structlog. Called once at import with the LOG_* env values."""
    if stream is None:
        stream = sys.stderr if fmt == "console" else sys.stdout
    structlog.configure(
        processors=_processors(fmt),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name).bind(logger=name)


def bind_job(signature: str) -> structlog.BoundLogger:
    """Logger for one staking cycle; every record carries the job's payout signature."""
    return get_logger("nosana_autostake.cycle").bind(job_signature=signature)
