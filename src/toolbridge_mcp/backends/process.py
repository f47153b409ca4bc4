"""Bounded subprocess runner shared by all backends."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional, Sequence

from ..security import (
    ExecutionError,
    ExecutionLimits,
    ExecutionTimeoutError,
    OutputTooLargeError,
)

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024

# Signature shared by run_process and the fakes used in tests.
ProcessRunner = Callable[[Sequence[str], ExecutionLimits], Awaitable[str]]


async def _read_capped(stream: Optional[asyncio.StreamReader], limit: int, label: str) -> bytes:
    if stream is None:
        return b""
    buf = bytearray()
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            raise OutputTooLargeError(f"{label} exceeded {limit} bytes")
    return bytes(buf)


async def run_process(argv: Sequence[str], limits: ExecutionLimits) -> str:
    """
    Runs `argv` without a shell and returns decoded stdout.

    The child is killed when it runs past `limits.command_timeout` or writes
    more than `limits.max_output_bytes` to either stream.

    Raises:
        ExecutionTimeoutError: the wall-clock limit was hit.
        OutputTooLargeError: an output stream exceeded the size limit.
        ExecutionError: the program is missing or exited non-zero.
    """
    if not argv:
        raise ExecutionError("Empty command")

    logger.debug("Spawning: %s", " ".join(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ExecutionError(f"Command not found: {argv[0]}") from e
    except OSError as e:
        raise ExecutionError(f"Failed to start {argv[0]}: {e}") from e

    readers = [
        asyncio.ensure_future(_read_capped(proc.stdout, limits.max_output_bytes, "stdout")),
        asyncio.ensure_future(_read_capped(proc.stderr, limits.max_output_bytes, "stderr")),
    ]
    try:
        stdout, stderr = await asyncio.wait_for(
            asyncio.gather(*readers),
            timeout=limits.command_timeout,
        )
        returncode = await proc.wait()
    except asyncio.TimeoutError as e:
        await _kill(proc, readers)
        raise ExecutionTimeoutError(
            f"Command timed out after {limits.command_timeout:g} seconds: {argv[0]}"
        ) from e
    except OutputTooLargeError:
        await _kill(proc, readers)
        raise
    except asyncio.CancelledError:
        await _kill(proc, readers)
        raise

    if returncode != 0:
        detail = stderr.decode(errors="replace").strip() or f"exit code {returncode}"
        raise ExecutionError(f"Command failed: {' '.join(argv)}\n{detail}")

    return stdout.decode(errors="replace")


async def _kill(proc: asyncio.subprocess.Process, readers: Sequence[asyncio.Future]) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    with contextlib.suppress(ProcessLookupError):
        await proc.wait()
    # Collect both readers so a second overflow is not left unretrieved.
    for reader in readers:
        reader.cancel()
    await asyncio.gather(*readers, return_exceptions=True)
