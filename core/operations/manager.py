"""Launches and supervises operations.

The request handler calls ``launch`` and returns the operation id right away.
The work runs in a detached task owned by the manager until it finishes; the
record in the registry is the only thing callers observe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from core.command.streaming import OperationCancelled, ProcessFailed

from .registry import OperationNotFound, OperationRecord, OperationRegistry
from .site_locks import SiteLocks

logger = logging.getLogger(__name__)

OperationWork = Callable[[OperationRecord, asyncio.Event], Awaitable[None]]


class OperationManager:
    def __init__(self, registry: OperationRegistry, locks: SiteLocks | None = None) -> None:
        self.registry = registry
        self.locks = locks or SiteLocks()
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}

    def launch(self, kind: str, site: str, work: OperationWork) -> OperationRecord:
        """Register a record and start *work(record, cancel_event)* in the background."""
        operation_id = self.registry.new_id(kind, site)
        record = self.registry.create(operation_id, kind=kind, site=site)
        cancel = asyncio.Event()
        self._cancel_events[operation_id] = cancel
        task = asyncio.create_task(self._supervise(record, work, cancel), name=f"operation:{operation_id}")
        self._tasks[operation_id] = task
        task.add_done_callback(lambda _t, op_id=operation_id: self._forget(op_id))
        logger.info("Launched operation %s", operation_id)
        return record

    def is_active(self, operation_id: str) -> bool:
        task = self._tasks.get(operation_id)
        return bool(task and not task.done())

    def active_ids(self) -> list[str]:
        return [op_id for op_id, task in self._tasks.items() if not task.done()]

    def cancel(self, operation_id: str) -> bool:
        """Request cancellation. Returns False when the operation already finished."""
        record = self.registry.get(operation_id)
        if record.completed:
            return False
        event = self._cancel_events.get(operation_id)
        if event is None:
            return False
        event.set()
        logger.info("Cancellation requested for %s", operation_id)
        return True

    async def wait(self, operation_id: str) -> None:
        task = self._tasks.get(operation_id)
        if task is None:
            if operation_id not in self.registry:
                raise OperationNotFound(operation_id)
            return
        await asyncio.wait({task})

    async def shutdown(self) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _forget(self, operation_id: str) -> None:
        self._tasks.pop(operation_id, None)
        self._cancel_events.pop(operation_id, None)

    async def _acquire(self, lock: asyncio.Lock, record: OperationRecord, cancel: asyncio.Event) -> None:
        if lock.locked():
            await record.append(f"Waiting for another operation on {record.site} to finish...")
        acquire = asyncio.create_task(lock.acquire())
        stop = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({acquire, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not acquire.done():
                acquire.cancel()
        if acquire.done() and not acquire.cancelled():
            if not cancel.is_set():
                return
            lock.release()
        raise OperationCancelled()

    async def _supervise(self, record: OperationRecord, work: OperationWork, cancel: asyncio.Event) -> None:
        try:
            lock = await self.locks.get(record.site)
            try:
                await self._acquire(lock, record, cancel)
                try:
                    await work(record, cancel)
                finally:
                    lock.release()
            finally:
                self.locks.discard(record.site)
            if not record.completed:
                await record.complete(True)
            logger.info("Operation %s finished: %s", record.id, record.status.value)
        except OperationCancelled:
            logger.info("Operation %s cancelled", record.id)
            if not record.completed:
                await record.cancel()
        except asyncio.CancelledError:
            if not record.completed:
                await record.cancel()
            raise
        except ProcessFailed as e:
            logger.warning("Operation %s failed: %s", record.id, e)
            if not record.completed:
                await record.complete(False, str(e))
        except Exception as e:
            logger.exception("Operation %s failed", record.id)
            if not record.completed:
                await record.complete(False, str(e) or type(e).__name__)
