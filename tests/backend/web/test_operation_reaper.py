import asyncio
from types import SimpleNamespace

import pytest

from backend.web.services.operation_reaper import operation_reaper_loop, run_operation_reaper_once
from config.schema import AppSettings, OperationSettings
from core.operations.registry import OperationRegistry


def _make_app(registry: OperationRegistry, interval: float = 60.0) -> SimpleNamespace:
    settings = AppSettings(operations=OperationSettings(reaper_interval_seconds=interval))
    return SimpleNamespace(state=SimpleNamespace(registry=registry, settings=settings))


@pytest.mark.asyncio
async def test_run_once_evicts_expired_records():
    registry = OperationRegistry(retention_seconds=10)
    record = registry.create("old")
    await record.complete(True)
    record.ended_at -= 60
    registry.create("running")

    assert run_operation_reaper_once(_make_app(registry)) == 1
    assert "old" not in registry
    assert "running" in registry


@pytest.mark.asyncio
async def test_loop_keeps_running_after_errors(monkeypatch):
    calls = []

    def _flaky(app_obj):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0

    monkeypatch.setattr("backend.web.services.operation_reaper.run_operation_reaper_once", _flaky)
    task = asyncio.create_task(operation_reaper_loop(_make_app(OperationRegistry(), interval=0.01)))
    while len(calls) < 2:
        await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(calls) >= 2
