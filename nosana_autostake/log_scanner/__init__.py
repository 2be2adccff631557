"""
Node log scanner package.

Turns the Nosana node's raw log output into JobFinished / QueuePosition events
for the staking pipeline.
"""

from nosana_autostake.log_scanner.events import JobFinished, LogEvent, Noise, QueuePosition
from nosana_autostake.log_scanner.scanner import LogEventScanner, classify_line

__all__ = [
    "JobFinished",
    "LogEvent",
    "LogEventScanner",
    "Noise",
    "QueuePosition",
    "classify_line",
]
