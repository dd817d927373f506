import asyncio
import re

import pytest

from core.operations.registry import OperationNotFound, OperationRecord, OperationRegistry, OperationStatus


def test_get_unknown_operation_raises_not_found():
    registry = OperationRegistry()

    with pytest.raises(OperationNotFound) as exc_info:
        registry.get("nope")

    assert isinstance(exc_info.value, KeyError)
    assert str(exc_info.value) == "Operation nope not found"


def test_create_rejects_duplicate_id():
    registry = OperationRegistry()
    registry.create("op-1")

    with pytest.raises(ValueError):
        registry.create("op-1")


def test_new_id_embeds_kind_and_site():
    op_id = OperationRegistry.new_id("start", "demo")

    assert re.fullmatch(r"start-demo-\d+-[0-9a-f]{6}", op_id)
    assert op_id != OperationRegistry.new_id("start", "demo")


@pytest.mark.asyncio
async def test_lines_only_grow_and_snapshots_are_prefixes():
    record = OperationRecord("op-1")
    await record.append(["one", "two"])
    first = record.snapshot()["lines"]
    await record.append("three")
    second = record.snapshot()["lines"]

    assert second[: len(first)] == first
    assert second == ["one", "two", "three"]
    # Snapshots are copies.
    first.append("mutated")
    assert record.lines == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_append_skips_blank_lines():
    record = OperationRecord("op-1")

    count = await record.append(["", "   ", "kept"])

    assert count == 1
    assert record.lines == ["kept"]


@pytest.mark.asyncio
async def test_completion_freezes_the_record():
    record = OperationRecord("op-1", kind="start", site="demo")
    await record.append("line")
    await record.complete(True)

    with pytest.raises(RuntimeError):
        await record.append("late")
    with pytest.raises(RuntimeError):
        await record.complete(False, "again")

    snap = record.snapshot()
    assert snap["lines"] == ["line"]
    assert snap["completed"] is True
    assert snap["success"] is True
    assert snap["status"] == "succeeded"
    assert snap["error"] is None
    assert snap["ended_at"] is not None


@pytest.mark.asyncio
async def test_failed_completion_keeps_error():
    record = OperationRecord("op-1")

    await record.complete(False, "Process exited with code 1")

    assert record.status is OperationStatus.FAILED
    assert record.error == "Process exited with code 1"


@pytest.mark.asyncio
async def test_cancel_sets_cancelled_status():
    record = OperationRecord("op-1")

    await record.cancel()

    assert record.completed is True
    assert record.success is False
    assert record.status is OperationStatus.CANCELLED
    assert record.error == "Operation cancelled"


@pytest.mark.asyncio
async def test_wait_for_more_wakes_on_append():
    record = OperationRecord("op-1")
    waiter = asyncio.create_task(record.wait_for_more(0, timeout=5))
    await asyncio.sleep(0)

    await record.append("hello")
    await asyncio.wait_for(waiter, timeout=1)

    assert record.lines_after(0) == ["hello"]


@pytest.mark.asyncio
async def test_wait_for_more_returns_on_timeout():
    record = OperationRecord("op-1")

    await record.wait_for_more(0, timeout=0.05)

    assert len(record) == 0


@pytest.mark.asyncio
async def test_registry_append_and_complete_by_id():
    registry = OperationRegistry()
    registry.create("op-1", kind="stop", site="demo")

    await registry.append("op-1", ["Stopping..."])
    await registry.complete("op-1", False, "boom")

    record = registry.get("op-1")
    assert record.lines == ["Stopping..."]
    assert record.error == "boom"


@pytest.mark.asyncio
async def test_evict_expired_drops_only_old_completed_records():
    registry = OperationRegistry(retention_seconds=60)
    old = registry.create("old")
    recent = registry.create("recent")
    running = registry.create("running")
    await old.complete(True)
    await recent.complete(True)
    old.ended_at -= 120
    running.created_at -= 3600

    evicted = registry.evict_expired()

    assert evicted == 1
    assert "old" not in registry
    assert "recent" in registry
    assert "running" in registry


@pytest.mark.asyncio
async def test_capacity_drops_oldest_completed_first():
    registry = OperationRegistry(max_records=2)
    first = registry.create("first")
    registry.create("second")
    await first.complete(True)

    registry.create("third")

    assert "first" not in registry
    assert len(registry) == 2


def test_capacity_never_drops_running_records():
    registry = OperationRegistry(max_records=1)
    registry.create("a")
    registry.create("b")

    assert "a" in registry and "b" in registry


def test_list_is_newest_first():
    registry = OperationRegistry()
    a = registry.create("a")
    b = registry.create("b")
    a.created_at, b.created_at = 1.0, 2.0

    assert [r.id for r in registry.list()] == ["b", "a"]
    assert registry.list()[0].summary()["line_count"] == 0
