"""Subprocess utilities for running toolchain commands from the event loop.

This module provides the single boundary through which swbuild launches
external programs. Every launch applies the platform-specific flags that
prevent console windows flashing up on Windows and detaches stdin so a child
cannot steal keystrokes from the terminal running the dev session.

Commands run in one of two modes:
- streamed: stdout/stderr are echoed line by line as they arrive
- captured: stdout is buffered and returned stripped; stderr is still echoed

A non-zero exit status always raises ExternalToolError, even if some output
was already buffered.
"""

import asyncio
import logging
import os
import subprocess
import sys
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from swbuild.errors import ExternalToolError
from swbuild.output import log_stream_line

logger = logging.getLogger(__name__)

# Chunked reads; a line may exceed the StreamReader limit (64 KiB).
READ_CHUNK_SIZE = 65536


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


async def safe_create_subprocess_exec(cmd: str, *args: str, **kwargs: Any) -> asyncio.subprocess.Process:
    """Start a subprocess with platform-specific flags.

    Automatically applies:
    - CREATE_NO_WINDOW on Windows (prevents console window)
    - stdin=DEVNULL (prevents console input handle inheritance)

    Note:
        - If 'creationflags' is explicitly provided in kwargs,
          it will be OR'd with platform defaults to preserve custom flags.
        - If 'stdin' is explicitly provided in kwargs, it will be used as-is.
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = asyncio.subprocess.DEVNULL

    return await asyncio.create_subprocess_exec(cmd, *args, **kwargs)


class CommandRunner(Protocol):
    """Capability to run an external command to completion.

    Implementations return the stripped stdout when ``capture`` is True and
    None otherwise, and raise ExternalToolError for any failure.
    """

    async def run(self, cmd: str, args: Sequence[str], capture: bool = False) -> Optional[str]: ...


class AsyncSubprocessRunner:
    """CommandRunner backed by real asyncio subprocesses."""

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        self.env = dict(env) if env is not None else None

    async def run(self, cmd: str, args: Sequence[str], capture: bool = False) -> Optional[str]:
        args = list(args)
        env = self.env if self.env is not None else os.environ.copy()
        logger.debug(f"Running {cmd} with {len(args)} args (capture={capture})")

        try:
            proc = await safe_create_subprocess_exec(
                cmd,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise ExternalToolError(cmd, args, None, detail=str(e)) from e

        assert proc.stdout is not None and proc.stderr is not None
        captured = bytearray()

        async def pump_stdout() -> None:
            if capture:
                while chunk := await proc.stdout.read(READ_CHUNK_SIZE):
                    captured.extend(chunk)
            else:
                await pump_lines(proc.stdout, log_stream_line)

        async def pump_stderr() -> None:
            await pump_lines(proc.stderr, lambda line: log_stream_line(line, stderr=True))

        finished = False
        try:
            await asyncio.gather(pump_stdout(), pump_stderr())
            finished = True
        except Exception as e:
            logger.debug(f"Reading output of {cmd} failed: {e}", exc_info=True)
            raise ExternalToolError(cmd, args, proc.returncode, detail=f"reading output failed: {e}") from e
        finally:
            if not finished:
                _kill(proc)
                await proc.wait()

        returncode = await proc.wait()

        if returncode != 0:
            logger.debug(f"{cmd} exited with {returncode}")
            raise ExternalToolError(cmd, args, returncode)

        if capture:
            return captured.decode(errors="replace").strip()
        return None


async def pump_lines(stream: asyncio.StreamReader, on_line: Callable[[str], None]) -> None:
    """Feed decoded lines of a stream to on_line, reading fixed-size chunks.

    Lines may be arbitrarily long; a trailing line without newline is
    delivered at EOF.
    """
    pending = b""
    while chunk := await stream.read(READ_CHUNK_SIZE):
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            on_line(line.decode(errors="replace") + "\n")
    if pending:
        on_line(pending.decode(errors="replace"))


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
