"""
Node log scanner — raw output chunks to LogEvents.

Chunks from the node's log stream do not align with line boundaries. The
scanner buffers the trailing partial line and only classifies complete lines,
so a job signature split across two reads is never truncated. Classification
is an ordered list of pure matchers; the first match wins.
"""

from __future__ import annotations

import codecs
import re
from typing import AsyncIterable, AsyncIterator, Callable, Optional

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import StreamIOError
from nosana_autostake.log_scanner.events import JobFinished, LogEvent, Noise, QueuePosition

logger = get_logger(__name__)

DEFAULT_MAX_BUFFER_BYTES = 5 * 1024 * 1024

# The node CLI colors its output; escape sequences must not end up in a signature
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
JOB_FINISHED_RE = re.compile(r"Job finished\s+(\S+)")
QUEUE_POSITION_RE = re.compile(r"QUEUED\s+at position (\d+)/(\d+)")

Matcher = Callable[[str], Optional[LogEvent]]


def match_job_finished(line: str) -> JobFinished | None:
    m = JOB_FINISHED_RE.search(line)
    if m is None:
        return None
    return JobFinished(signature=m.group(1))


def match_queue_position(line: str) -> QueuePosition | None:
    m = QUEUE_POSITION_RE.search(line)
    if m is None:
        return None
    return QueuePosition(position=int(m.group(1)), total=int(m.group(2)))


MATCHERS: tuple[Matcher, ...] = (match_job_finished, match_queue_position)


def classify_line(line: str) -> LogEvent:
    """Classify one complete line: JobFinished, QueuePosition, or Noise."""
    clean = ANSI_ESCAPE_RE.sub("", line).rstrip("\r")
    for matcher in MATCHERS:
        event = matcher(clean)
        if event is not None:
            return event
    return Noise(line=clean)


class LogEventScanner:
    """
    Incremental line splitter and classifier for one log stream.

    Not restartable: one instance per stream. feed() returns the JobFinished and
    QueuePosition events of the lines completed by the chunk; Noise lines are
    logged (error lines at warning level) and not returned.
    """

    def __init__(self, *, max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES) -> None:
        if max_buffer_bytes <= 0:
            raise ValueError("max_buffer_bytes must be positive")
        self._max_buffer = max_buffer_bytes
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial = ""
        self._dropped_lines = 0

    @property
    def pending(self) -> str:
        """Buffered partial line not yet terminated by a newline."""
        return self._partial

    @property
    def dropped_lines(self) -> int:
        return self._dropped_lines

    def feed(self, chunk: bytes | str) -> list[LogEvent]:
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return []
        lines = (self._partial + text).split("\n")
        self._partial = lines.pop()
        if len(self._partial) > self._max_buffer:
            logger.warning(
                "log_line_over_buffer_limit_dropped",
                buffered=len(self._partial),
                max_buffer_bytes=self._max_buffer,
            )
            self._partial = ""
            self._dropped_lines += 1
        return self._classify_all(lines)

    def flush(self) -> list[LogEvent]:
        """Classify whatever is left at end of stream."""
        rest = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        if not rest:
            return []
        return self._classify_all([rest])

    def _classify_all(self, lines: list[str]) -> list[LogEvent]:
        out: list[LogEvent] = []
        for line in lines:
            event = classify_line(line)
            if isinstance(event, Noise):
                if event.is_error:
                    logger.warning("node_log_error_line", line=event.line[:500])
                continue
            out.append(event)
        return out

    async def scan(self, chunks: AsyncIterable[bytes | str]) -> AsyncIterator[LogEvent]:
        """
        Lazily yield events from an async chunk source, in line order.

        A read failure of the source raises StreamIOError.
        """
        iterator = chunks.__aiter__()
        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except OSError as e:
                raise StreamIOError(f"log stream read failed: {e}") from e
            for event in self.feed(chunk):
                yield event
        for event in self.flush():
            yield event
