"""Site listing, creation and lifecycle endpoints.

Every mutating endpoint resolves the site, launches a background operation
and returns its id immediately. Progress is read through ``/api/operations``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from backend.web.core.config import ALLOWED_RECIPES
from backend.web.core.dependencies import get_app
from backend.web.models.requests import CreateSiteRequest, MigrateDatabaseRequest
from backend.web.services.site_service import Site, SiteNotFound, get_site_info, list_sites, resolve_site
from backend.web.utils.validation import (
    validate_database_spec,
    validate_enum,
    validate_php_version,
    validate_site_name,
)
from config.schema import AppSettings
from core.lando.landofile import LandofileError, LandofilePatch, database_engine, read_landofile
from core.lando.migration import DatabaseMigration
from core.lando.workflows import NewSite, SiteWorkflows
from core.operations.registry import OperationRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sites", tags=["sites"])

ADMIN_UI_ENGINES = ("mysql", "mariadb")


def _snapshot(app: Any) -> AppSettings:
    """Settings copy bound to one operation; later config edits do not leak into it."""
    return app.state.settings.model_copy(deep=True)


def _workflows(app: Any, settings: AppSettings) -> SiteWorkflows:
    return SiteWorkflows(settings, app.state.runner, app.state.executor)


async def _resolve(app: Any, name: str) -> Site:
    try:
        return await resolve_site(name, app.state.settings, app.state.runner)
    except SiteNotFound as e:
        raise HTTPException(404, str(e)) from e


def _launched(record: OperationRecord) -> dict[str, Any]:
    return {"success": True, "operationId": record.id}


async def _launch_lifecycle(app: Any, name: str, action: str) -> dict[str, Any]:
    site = await _resolve(app, name)
    workflows = _workflows(app, _snapshot(app))

    async def work(record: OperationRecord, cancel: asyncio.Event) -> None:
        await workflows.lifecycle(action, site.name, site.dir, record, cancel)

    return _launched(app.state.operations.launch(action, site.name, work))


@router.get("")
async def list_all_sites(app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    sites = await list_sites(app.state.settings, app.state.runner)
    return {"success": True, "sites": [site.to_dict() for site in sites]}


@router.post("")
async def create_site(
    payload: CreateSiteRequest,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    """Validate, then create the site in the background."""
    name = validate_site_name(payload.name)
    validate_enum(payload.recipe, ALLOWED_RECIPES, "recipe")
    if payload.database:
        validate_database_spec(payload.database)
    if payload.php:
        validate_php_version(payload.php)

    settings = _snapshot(app)
    if not settings.sites_directory:
        raise HTTPException(400, "Sites directory is not configured")
    if (Path(settings.sites_directory).expanduser() / name).exists():
        raise HTTPException(400, "Site already exists")

    site = NewSite(
        name=name,
        recipe=payload.recipe,
        php=payload.php,
        database=payload.database,
        webroot=payload.webroot,
    )
    workflows = _workflows(app, settings)

    async def work(record: OperationRecord, cancel: asyncio.Event) -> None:
        await workflows.create(site, record, cancel)

    return _launched(app.state.operations.launch("create", name, work))


@router.get("/{name}/info")
async def site_info(name: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    site = await _resolve(app, name)
    try:
        info = await get_site_info(site, app.state.settings, app.state.runner)
    except OSError as e:
        raise HTTPException(500, f"Could not read configuration for {name}: {e}") from e
    return {"success": True, **info}


@router.post("/{name}/start")
async def start_site(name: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return await _launch_lifecycle(app, name, "start")


@router.post("/{name}/stop")
async def stop_site(name: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return await _launch_lifecycle(app, name, "stop")


@router.post("/{name}/restart")
async def restart_site(name: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return await _launch_lifecycle(app, name, "restart")


@router.post("/{name}/rebuild")
async def rebuild_site(name: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    return await _launch_lifecycle(app, name, "rebuild")


@router.delete("/{name}")
async def destroy_site(name: str, app: Annotated[Any, Depends(get_app)] = None) -> dict[str, Any]:
    """Destroy containers, leftover volumes and the site directory."""
    site = await _resolve(app, name)
    workflows = _workflows(app, _snapshot(app))

    async def work(record: OperationRecord, cancel: asyncio.Event) -> None:
        await workflows.destroy(site.name, site.dir, record, cancel)

    return _launched(app.state.operations.launch("destroy", site.name, work))


@router.post("/{name}/migrate-database")
async def migrate_database(
    name: str,
    payload: MigrateDatabaseRequest,
    app: Annotated[Any, Depends(get_app)] = None,
) -> dict[str, Any]:
    """Switch php, database engine or the phpMyAdmin service.

    Runs export, reconfigure, destroy, recreate, import and cleanup in order.
    """
    patch = LandofilePatch(php=payload.php, database=payload.database, admin_ui=payload.admin_ui)
    if patch.is_empty():
        raise HTTPException(400, "Nothing to change: provide php, database or adminUi")
    if patch.database:
        validate_database_spec(patch.database)
    if patch.php:
        validate_php_version(patch.php)

    site = await _resolve(app, name)
    if patch.admin_ui:
        try:
            current = await asyncio.to_thread(read_landofile, site.dir)
        except (OSError, LandofileError) as e:
            raise HTTPException(400, f"Could not read .lando.yml for {name}: {e}") from e
        config = current.get("config") if isinstance(current.get("config"), dict) else {}
        engine = database_engine(patch.database) or database_engine(config.get("database"))
        if engine is not None and engine not in ADMIN_UI_ENGINES:
            raise HTTPException(400, f"phpMyAdmin needs a MySQL or MariaDB database, not {engine}")

    migration = DatabaseMigration(_snapshot(app), app.state.executor)

    async def work(record: OperationRecord, cancel: asyncio.Event) -> None:
        await migration.run(site.name, site.dir, patch, record, cancel)

    return _launched(app.state.operations.launch("migrate", site.name, work))
