"""Application lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.web.services.operation_reaper import operation_reaper_loop
from config.loader import load_settings
from core.command.runner import CommandRunner
from core.command.streaming import StreamingExecutor
from core.operations.manager import OperationManager
from core.operations.registry import OperationRegistry
from core.operations.site_locks import SiteLocks

logger = logging.getLogger(__name__)


def init_app_state(app: FastAPI, settings) -> None:
    """Attach the operation engine to ``app.state``."""
    ops = settings.operations
    app.state.settings = settings
    app.state.registry = OperationRegistry(retention_seconds=ops.retention_seconds, max_records=ops.max_records)
    app.state.site_locks = SiteLocks()
    app.state.operations = OperationManager(app.state.registry, app.state.site_locks)
    app.state.runner = CommandRunner(timeout=ops.command_timeout_seconds, max_buffer=ops.max_buffer_bytes)
    app.state.executor = StreamingExecutor()
    app.state.reaper_task = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    settings = await asyncio.to_thread(load_settings)
    init_app_state(app, settings)
    logger.info("Managing sites in %s", settings.sites_directory or "(not configured)")
    logger.info("Lando path: %s", settings.lando_path)
    if not settings.setup_complete:
        logger.warning("First-time setup required: POST /api/config with landoPath and sitesDirectory")

    try:
        app.state.reaper_task = asyncio.create_task(operation_reaper_loop(app))
        yield
    finally:
        task = app.state.reaper_task
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        # Outstanding operations end as cancelled; their children get SIGTERM.
        await app.state.operations.shutdown()
