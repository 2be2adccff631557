"""
Node log source — follows the Nosana node container's output.

Spawns `docker logs -f <container>` and yields raw output chunks as they
arrive. stderr is merged into stdout because the node CLI prints its status
lines on either. A clean exit (code 0) ends the chunk stream; a nonzero exit
(container missing or removed, daemon gone) raises StreamIOError after the
remaining output has been yielded.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Sequence

from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.core.exceptions import StreamIOError

logger = get_logger(__name__)

DEFAULT_READ_SIZE = 64 * 1024
DEFAULT_STREAM_LIMIT = 5 * 1024 * 1024


def docker_logs_command(container: str) -> list[str]:
    return ["docker", "logs", "-f", container]


async def process_output_chunks(
    argv: Sequence[str],
    *,
    read_size: int = DEFAULT_READ_SIZE,
    limit: int = DEFAULT_STREAM_LIMIT,
) -> AsyncIterator[bytes]:
    """Run argv and yield its combined stdout/stderr in chunks.

    StreamIOError if it cannot start, its output cannot be read, or it exits nonzero.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            limit=limit,
        )
    except OSError as e:
        raise StreamIOError(f"cannot start {argv[0]}: {e}") from e

    logger.info("node_log_stream_started", command=" ".join(argv), pid=proc.pid)
    stdout = proc.stdout
    try:
        if stdout is None:
            raise StreamIOError(f"{argv[0]} started without an output pipe")
        while True:
            try:
                chunk = await stdout.read(read_size)
            except OSError as e:
                raise StreamIOError(f"reading {argv[0]} output failed: {e}") from e
            if not chunk:
                break
            yield chunk
        code = await proc.wait()
        if code != 0:
            logger.error("node_log_stream_failed", exit_code=code)
            raise StreamIOError(f"{argv[0]} exited with code {code}")
        logger.info("node_log_stream_exited", exit_code=code)
    finally:
        if proc.returncode is None:
            proc.terminate()
            await proc.wait()


def docker_log_chunks(container: str, **kwargs: int) -> AsyncIterator[bytes]:
    """Follow `docker logs -f <container>`."""
    return process_output_chunks(docker_logs_command(container), **kwargs)
