"""Streaming executor: run a long command and feed its output into an operation record."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal

from core.operations.registry import OperationRecord, OperationRegistry

from .ansi import split_lines

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
_MAX_PENDING_CHARS = 64 * 1024
DEFAULT_KILL_GRACE_SEC = 5.0


class ProcessFailed(RuntimeError):
    def __init__(self, exit_code: int) -> None:
        super().__init__(f"Process exited with code {exit_code}")
        self.exit_code = exit_code


class OperationCancelled(Exception):
    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)


def check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled()


class LineAssembler:
    """Turns a byte stream into sanitized lines.

    Multi-byte UTF-8 characters split across reads are held by an incremental
    decoder. A trailing partial line is held until its line break arrives or
    the stream ends.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(data)
        cut = max(text.rfind("\n"), text.rfind("\r"))
        if cut < 0:
            if len(text) > _MAX_PENDING_CHARS:
                self._pending = ""
                return split_lines(text)
            self._pending = text
            return []
        self._pending = text[cut + 1 :]
        return split_lines(text[: cut + 1])

    def flush(self) -> list[str]:
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return split_lines(text)


class StreamingExecutor:
    """Spawns shell commands and appends their output to an OperationRecord as it arrives.

    stdout and stderr are read concurrently and interleaved in arrival order.
    """

    def __init__(self, kill_grace_sec: float = DEFAULT_KILL_GRACE_SEC) -> None:
        self.kill_grace_sec = kill_grace_sec

    async def stream(
        self,
        record: OperationRecord,
        command: str,
        cwd: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Run *command* to completion. Returns 0 or raises ProcessFailed / OperationCancelled / OSError."""
        check_cancelled(cancel)
        logger.info("[%s] $ %s (cwd=%s)", record.id, command, cwd)
        proc = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            start_new_session=os.name == "posix",
        )

        readers = [
            asyncio.create_task(self._pump(proc.stdout, record)),
            asyncio.create_task(self._pump(proc.stderr, record)),
        ]
        waiter = asyncio.create_task(proc.wait())
        watchers: set[asyncio.Task] = {waiter}
        stop: asyncio.Task | None = None
        if cancel is not None:
            stop = asyncio.create_task(cancel.wait())
            watchers.add(stop)

        try:
            done, _ = await asyncio.wait(watchers, return_when=asyncio.FIRST_COMPLETED)
            if waiter not in done:
                logger.info("[%s] cancellation requested, terminating pid %s", record.id, proc.pid)
                await self._terminate(proc)
                await asyncio.gather(*readers, return_exceptions=True)
                raise OperationCancelled()
            await asyncio.gather(*readers)
        finally:
            if stop is not None:
                stop.cancel()
            for task in readers:
                if not task.done():
                    task.cancel()
            if proc.returncode is None:
                await self._terminate(proc)
            if not waiter.done():
                waiter.cancel()

        if proc.returncode != 0:
            raise ProcessFailed(proc.returncode)
        return 0

    async def run_streaming(
        self,
        registry: OperationRegistry,
        operation_id: str,
        command: str,
        cwd: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> bool:
        """Register a record for *operation_id*, stream *command* into it, and complete it.

        Failures are recorded on the record and then re-raised.
        """
        record = registry.create(operation_id)
        try:
            await self.stream(record, command, cwd=cwd, cancel=cancel)
        except OperationCancelled:
            await record.cancel()
            raise
        except (ProcessFailed, OSError) as e:
            await record.complete(False, str(e))
            raise
        await record.complete(True)
        return True

    async def _pump(self, stream: asyncio.StreamReader, record: OperationRecord) -> None:
        assembler = LineAssembler()
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            lines = assembler.feed(chunk)
            if lines:
                await record.append(lines)
        tail = assembler.flush()
        if tail:
            await record.append(tail)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        self._signal(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_sec)
            return
        except TimeoutError:
            logger.warning("pid %s ignored SIGTERM, killing", proc.pid)
        self._signal(proc, signal.SIGKILL if hasattr(signal, "SIGKILL") else signal.SIGTERM)
        await proc.wait()

    @staticmethod
    def _signal(proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if os.name == "posix":
                # The shell runs in its own session; signal the whole group so lando dies too.
                os.killpg(proc.pid, sig)
            elif sig == signal.SIGTERM:
                proc.terminate()
            else:
                proc.kill()
        except ProcessLookupError:
            pass
