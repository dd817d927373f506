"""Completed-operation reaper service."""

import asyncio
import logging

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def run_operation_reaper_once(app_obj: FastAPI) -> int:
    """Drop completed operations older than the retention window."""
    return app_obj.state.registry.evict_expired()


async def operation_reaper_loop(app_obj: FastAPI) -> None:
    """Background task that periodically evicts expired operation records."""
    interval = app_obj.state.settings.operations.reaper_interval_seconds
    while True:
        try:
            count = run_operation_reaper_once(app_obj)
            if count > 0:
                logger.debug("Reaper evicted %d operation(s)", count)
        except Exception:
            logger.exception("Operation reaper failed")
        await asyncio.sleep(interval)
