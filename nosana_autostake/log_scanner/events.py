"""
Events produced by the node log scanner.

A LogEvent is ephemeral: produced from one complete log line and consumed by
the pipeline in the same scan iteration. Never persisted.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class JobFinished:
    """A job completed; `signature` is the payout transaction signature."""

    signature: str


@dataclass(frozen=True)
class QueuePosition:
    """The node is queued in a market at `position` of `total`."""

    position: int
    total: int


@dataclass(frozen=True)
class Noise:
    """Any other line; kept only for observability."""

    line: str

    @property
    def is_error(self) -> bool:
        return "Error" in self.line or "Failed" in self.line


LogEvent = Union[JobFinished, QueuePosition, Noise]
