"""Operation progress endpoints: polling, SSE streaming and cancellation."""

import json
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from backend.web.core.config import SSE_HEADERS, SSE_KEEPALIVE_SEC
from backend.web.core.dependencies import get_app
from core.operations.registry import OperationNotFound, OperationRecord

router = APIRouter(prefix="/api/operations", tags=["operations"])


def _get_record(app: Any, operation_id: str) -> OperationRecord:
    try:
        return app.state.registry.get(operation_id)
    except OperationNotFound as e:
        raise HTTPException(404, str(e)) from e


@router.get("")
async def list_operations(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return {"success": True, "operations": [record.summary() for record in app.state.registry.list()]}


@router.get("/{operation_id}/logs")
async def get_operation_logs(operation_id: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    """Poll an operation. ``logs`` is always a prefix of the final log."""
    snap = _get_record(app, operation_id).snapshot()
    return {
        "success": True,
        "logs": snap["lines"],
        "completed": snap["completed"],
        "operationSuccess": snap["success"],
        "error": snap["error"],
        "status": snap["status"],
    }


async def observe_operation(record: OperationRecord, after: int = 0) -> AsyncGenerator[dict[str, str], None]:
    """Yield each log line as a ``log`` event, then one ``done`` event.

    Safe to abort; the operation keeps running when the client disconnects.
    Event ids are line numbers so ``Last-Event-ID`` resumes where it stopped.
    """
    yield {"retry": 5000}

    cursor = max(after, 0)
    while True:
        lines = record.lines_after(cursor)
        for offset, line in enumerate(lines, start=cursor + 1):
            yield {"event": "log", "id": str(offset), "data": line}
        cursor += len(lines)
        if record.completed and cursor >= len(record):
            break
        if not lines:
            before = len(record)
            await record.wait_for_more(cursor, timeout=SSE_KEEPALIVE_SEC)
            if len(record) == before and not record.completed:
                yield {"comment": "keepalive"}

    yield {
        "event": "done",
        "data": json.dumps({"status": record.status.value, "success": record.success, "error": record.error}),
    }


@router.get("/{operation_id}/stream")
async def stream_operation(
    operation_id: str,
    request: Request,
    after: int = 0,
    app: Annotated[Any, Depends(get_app)] = None,
) -> EventSourceResponse:
    """SSE stream of an operation's log. Supports ``?after=N`` and ``Last-Event-ID``."""
    record = _get_record(app, operation_id)
    last_id = request.headers.get("Last-Event-ID")
    if last_id:
        try:
            after = max(after, int(last_id))
        except ValueError:
            pass
    return EventSourceResponse(observe_operation(record, after=after), headers=SSE_HEADERS)


@router.post("/{operation_id}/cancel")
async def cancel_operation(operation_id: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    try:
        cancelled = app.state.operations.cancel(operation_id)
    except OperationNotFound as e:
        raise HTTPException(404, str(e)) from e
    return {"success": True, "cancelled": cancelled}
