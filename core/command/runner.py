"""One-shot command runner for quick administrative calls.

Output is buffered until the process exits. Every failure (timeout, non-zero
exit, spawn error, runaway output) comes back as a CommandResult instead of
an exception.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 300.0
DEFAULT_MAX_BUFFER = 10 * 1024 * 1024
_READ_CHUNK = 64 * 1024
_REAP_TIMEOUT_SEC = 5.0


class OutputLimitExceeded(Exception):
    """Raised internally when a stream grows past the runner's buffer limit."""


@dataclass
class CommandResult:
    """Result of a buffered command."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    exit_code: int | None = None
    timed_out: bool = False

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "stdout": self.stdout, "stderr": self.stderr}
        return {"success": False, "error": self.error, "stderr": self.stderr}


async def _read_bounded(stream: asyncio.StreamReader, buffer: bytearray, limit: int) -> None:
    """Read *stream* into *buffer* until EOF. The buffer survives cancellation."""
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        buffer.extend(chunk)
        if len(buffer) > limit:
            raise OutputLimitExceeded(f"Output exceeded {limit} bytes")


def _decode(buffer: bytearray) -> str:
    return buffer.decode("utf-8", errors="replace")


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it started, then reap it."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        elif proc.returncode is None:
            proc.kill()
    except ProcessLookupError:
        pass
    try:
        await asyncio.wait_for(proc.wait(), timeout=_REAP_TIMEOUT_SEC)
    except TimeoutError:
        logger.warning("pid %s still holds its pipes after kill", proc.pid)


class CommandRunner:
    """Runs a fully formed shell command to completion."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SEC, max_buffer: int = DEFAULT_MAX_BUFFER):
        self.timeout = timeout
        self.max_buffer = max_buffer

    async def run(self, command: str, cwd: str | None = None, timeout: float | None = None) -> CommandResult:
        timeout = self.timeout if timeout is None else timeout
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            logger.warning("Failed to spawn %r: %s", command, e)
            return CommandResult(success=False, error=str(e))

        stdout_buf = bytearray()
        stderr_buf = bytearray()
        reader = asyncio.gather(
            _read_bounded(proc.stdout, stdout_buf, self.max_buffer),
            _read_bounded(proc.stderr, stderr_buf, self.max_buffer),
            proc.wait(),
        )
        try:
            _, _, exit_code = await asyncio.wait_for(reader, timeout=timeout)
        except TimeoutError:
            await _kill(proc)
            logger.warning("Command timed out after %ss: %s", timeout, command)
            return CommandResult(
                success=False,
                stdout=_decode(stdout_buf),
                stderr=_decode(stderr_buf),
                error=f"Command timed out after {timeout:g}s",
                timed_out=True,
            )
        except OutputLimitExceeded as e:
            reader.cancel()
            await _kill(proc)
            logger.warning("%s: %s", e, command)
            return CommandResult(
                success=False,
                stderr=_decode(stderr_buf[: self.max_buffer]),
                error=str(e),
            )

        stdout = _decode(stdout_buf)
        stderr = _decode(stderr_buf)
        if exit_code != 0:
            logger.warning("Command exited with code %s: %s", exit_code, command)
            return CommandResult(
                success=False,
                stdout=stdout,
                stderr=stderr,
                error=f"Command failed with exit code {exit_code}: {command}",
                exit_code=exit_code,
            )
        return CommandResult(success=True, stdout=stdout, stderr=stderr, exit_code=0)
