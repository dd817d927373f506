"""In-memory registry of long-running site operations.

Each OperationRecord has exactly one writer (the task that owns the
operation) and any number of pollers. Everything runs on one event loop, so
state changes made without an intervening await are atomic for readers.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Iterable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SEC = 30 * 60
DEFAULT_MAX_RECORDS = 500


class OperationStatus(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OperationNotFound(KeyError):
    def __init__(self, operation_id: str) -> None:
        super().__init__(operation_id)
        self.operation_id = operation_id

    def __str__(self) -> str:
        return f"Operation {self.operation_id} not found"


class OperationRecord:
    def __init__(self, operation_id: str, *, kind: str = "", site: str = "") -> None:
        self.id = operation_id
        self.kind = kind
        self.site = site
        self.status = OperationStatus.RUNNING
        self.completed = False
        self.success: bool | None = None
        self.error: str | None = None
        self.created_at = time.time()
        self.ended_at: float | None = None

        self._lines: list[str] = []
        self._cond = asyncio.Condition()

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def lines_after(self, cursor: int) -> list[str]:
        if cursor <= 0:
            return list(self._lines)
        return self._lines[cursor:]

    def __len__(self) -> int:
        return len(self._lines)

    async def append(self, lines: Iterable[str] | str) -> int:
        """Append non-blank lines in order. Returns the new line count."""
        if isinstance(lines, str):
            lines = [lines]
        if self.completed:
            raise RuntimeError(f"operation {self.id} is already completed")
        new = [line for line in lines if line and line.strip()]
        if new:
            self._lines.extend(new)
            async with self._cond:
                self._cond.notify_all()
        return len(self._lines)

    async def complete(self, success: bool, error: str | None = None, *, status: OperationStatus | None = None) -> None:
        if self.completed:
            raise RuntimeError(f"operation {self.id} is already completed")
        if status is None:
            status = OperationStatus.SUCCEEDED if success else OperationStatus.FAILED
        # Set together, no await in between.
        self.status = status
        self.success = success
        self.error = None if success else (error or "Operation failed")
        self.ended_at = time.time()
        self.completed = True
        async with self._cond:
            self._cond.notify_all()

    async def cancel(self) -> None:
        await self.complete(False, "Operation cancelled", status=OperationStatus.CANCELLED)

    async def wait_for_more(self, cursor: int, timeout: float = 15.0) -> None:
        """Block until there are lines past *cursor*, the record completes, or timeout."""
        async with self._cond:
            if len(self._lines) > cursor or self.completed:
                return
            try:
                await asyncio.wait_for(self._cond.wait(), timeout=timeout)
            except TimeoutError:
                return

    def snapshot(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "site": self.site,
            "lines": list(self._lines),
            "status": self.status.value,
            "completed": self.completed,
            "success": self.success,
            "error": self.error,
            "created_at": self.created_at,
            "ended_at": self.ended_at,
        }

    def summary(self) -> dict[str, Any]:
        data = self.snapshot()
        data["line_count"] = len(data.pop("lines"))
        return data


class OperationRegistry:
    """Process-wide map of operation id to OperationRecord.

    Completed records are evicted after ``retention_seconds``; when more than
    ``max_records`` are held, the oldest completed records go first. Running
    records are never evicted.
    """

    def __init__(
        self,
        *,
        retention_seconds: float = DEFAULT_RETENTION_SEC,
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> None:
        self.retention_seconds = retention_seconds
        self.max_records = max_records
        self._records: dict[str, OperationRecord] = {}

    @staticmethod
    def new_id(kind: str, site: str) -> str:
        return f"{kind}-{site}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"

    def create(self, operation_id: str, *, kind: str = "", site: str = "") -> OperationRecord:
        if operation_id in self._records:
            raise ValueError(f"operation {operation_id} already exists")
        self._enforce_capacity()
        rec = OperationRecord(operation_id, kind=kind, site=site)
        self._records[operation_id] = rec
        return rec

    def get(self, operation_id: str) -> OperationRecord:
        rec = self._records.get(operation_id)
        if rec is None:
            raise OperationNotFound(operation_id)
        return rec

    def __contains__(self, operation_id: str) -> bool:
        return operation_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def list(self) -> list[OperationRecord]:
        return sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)

    async def append(self, operation_id: str, lines: Iterable[str] | str) -> int:
        return await self.get(operation_id).append(lines)

    async def complete(self, operation_id: str, success: bool, error: str | None = None) -> None:
        await self.get(operation_id).complete(success, error)

    def evict_expired(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        cutoff = now - self.retention_seconds
        expired = [
            op_id
            for op_id, rec in self._records.items()
            if rec.completed and rec.ended_at is not None and rec.ended_at <= cutoff
        ]
        for op_id in expired:
            del self._records[op_id]
        if expired:
            logger.info("Evicted %d completed operation(s)", len(expired))
        return len(expired)

    def _enforce_capacity(self) -> None:
        overflow = len(self._records) - self.max_records + 1
        if overflow <= 0:
            return
        done = sorted(
            (rec for rec in self._records.values() if rec.completed),
            key=lambda r: r.ended_at or r.created_at,
        )
        for rec in done[:overflow]:
            del self._records[rec.id]
        if len(self._records) >= self.max_records:
            logger.warning("Operation registry over capacity: %d running operation(s)", len(self._records))
