"""
Structured logging for Nosana Auto-Stake.

JSON logs with timestamp, event_type and per-event fields.
Use get_logger() in all modules for aggregation-friendly output.
"""

from nosana_autostake.autostake_logging.logger import bind_job, get_logger

__all__ = ["bind_job", "get_logger"]
