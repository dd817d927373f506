"""Application settings endpoints.

Settings are stored in ~/.landoguirc.json (or $LANDO_GUI_CONFIG). Updates
apply to operations launched afterwards; running operations keep the
settings they started with.
"""

import asyncio
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from backend.web.core.dependencies import get_app
from backend.web.models.requests import VerifySettingsRequest
from config.loader import (
    detect_lando_path,
    detect_sites_directory,
    merge_settings,
    save_settings,
    verify_lando,
    verify_sites_directory,
)
from core.command.runner import CommandRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/config", tags=["config"])


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {location}: {first.get('msg')}" if location else str(first.get("msg"))


@router.get("")
async def get_config(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return {"success": True, "config": app.state.settings.model_dump(by_alias=True)}


@router.post("")
async def update_config(
    updates: Annotated[dict[str, Any], Body()],
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    """Merge a partial update into the current settings and persist it."""
    try:
        settings = merge_settings(app.state.settings, updates)
    except ValidationError as e:
        raise HTTPException(400, _validation_message(e)) from e
    try:
        path = await asyncio.to_thread(save_settings, settings)
    except OSError as e:
        raise HTTPException(500, f"Could not save settings: {e}") from e

    ops = settings.operations
    app.state.settings = settings
    app.state.registry.retention_seconds = ops.retention_seconds
    app.state.registry.max_records = ops.max_records
    app.state.runner = CommandRunner(timeout=ops.command_timeout_seconds, max_buffer=ops.max_buffer_bytes)
    logger.info("Settings saved to %s", path)
    return {"success": True, "config": settings.model_dump(by_alias=True)}


@router.get("/detect")
async def detect_config(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    """Guess the lando binary and sites directory, and check both."""
    lando_path = await asyncio.to_thread(detect_lando_path)
    sites_directory = await asyncio.to_thread(detect_sites_directory)
    detected = {
        "landoPath": lando_path,
        "sitesDirectory": sites_directory,
        "landoValid": await verify_lando(lando_path),
        "sitesDirectoryValid": verify_sites_directory(sites_directory),
    }
    return {"success": True, "detected": detected}


@router.post("/verify")
async def verify_config(payload: VerifySettingsRequest) -> dict[str, Any]:
    return {
        "success": True,
        "landoValid": await verify_lando(payload.lando_path),
        "sitesDirectoryValid": verify_sites_directory(payload.sites_directory),
    }
