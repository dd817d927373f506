"""Site lifecycle operations driven through the streaming executor."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from config.schema import AppSettings
from core.command.runner import CommandRunner
from core.command.streaming import ProcessFailed, StreamingExecutor, check_cancelled
from core.operations.registry import OperationRecord

from .commands import (
    LIFECYCLE_ACTIONS,
    docker_cleanup_commands,
    lando,
    wordpress_download_command,
    wordpress_install_commands,
)
from .landofile import render_new_site, write_landofile

logger = logging.getLogger(__name__)

_PROGRESS = {
    "start": "Starting",
    "stop": "Stopping",
    "restart": "Restarting",
    "rebuild": "Rebuilding",
}


@dataclass
class NewSite:
    name: str
    recipe: str
    php: str | None = None
    database: str | None = None
    webroot: str | None = None


class SiteWorkflows:
    """One instance per operation, bound to the settings current at launch."""

    def __init__(self, settings: AppSettings, runner: CommandRunner, executor: StreamingExecutor) -> None:
        self.settings = settings
        self.runner = runner
        self.executor = executor

    def lando(self, *args: str) -> str:
        return lando(self.settings.lando_path, *args)

    async def lifecycle(
        self,
        action: str,
        site_name: str,
        site_dir: str,
        record: OperationRecord,
        cancel: asyncio.Event | None = None,
    ) -> None:
        if action not in LIFECYCLE_ACTIONS:
            raise ValueError(f"Unknown action: {action}")
        await record.append(f"{_PROGRESS[action]} {site_name} in {site_dir}...")
        start = len(record)
        try:
            await self.executor.stream(record, self.lando(*LIFECYCLE_ACTIONS[action]), cwd=site_dir, cancel=cancel)
        except ProcessFailed:
            if action == "start" and _network_missing(record.lines_after(start)):
                await record.append("⚠ Docker network error detected. This site needs to be rebuilt.")
            raise
        await record.append(f"✓ {site_name} {action} complete")

    async def create(self, site: NewSite, record: OperationRecord, cancel: asyncio.Event | None = None) -> None:
        site_dir = Path(self.settings.sites_directory).expanduser() / site.name
        check_cancelled(cancel)
        await record.append(f"Creating directory {site_dir}...")
        await asyncio.to_thread(site_dir.mkdir, parents=True, exist_ok=False)

        if site.recipe == "wordpress":
            await record.append("Downloading WordPress...")
            await self.executor.stream(record, wordpress_download_command(), cwd=str(site_dir), cancel=cancel)

        check_cancelled(cancel)
        await record.append("Writing .lando.yml...")
        config = render_new_site(site.name, site.recipe, php=site.php, database=site.database, webroot=site.webroot)
        await asyncio.to_thread(write_landofile, site_dir, config)

        await record.append(f"Starting {site.name}...")
        await self.executor.stream(record, self.lando("start"), cwd=str(site_dir), cancel=cancel)

        if site.recipe == "wordpress":
            wp = self.settings.wordpress
            commands = wordpress_install_commands(
                self.settings.lando_path, site.name, wp.admin_user, wp.admin_password, wp.admin_email
            )
            await record.append("Configuring WordPress...")
            await self.executor.stream(record, commands[0], cwd=str(site_dir), cancel=cancel)
            await record.append("Installing WordPress...")
            await self.executor.stream(record, commands[1], cwd=str(site_dir), cancel=cancel)

        await record.append(f"✓ Site {site.name} created: https://{site.name}.lndo.site")

    async def destroy(
        self,
        site_name: str,
        site_dir: str,
        record: OperationRecord,
        cancel: asyncio.Event | None = None,
    ) -> None:
        await record.append(f"Destroying {site_name}...")
        await self.executor.stream(record, self.lando("destroy", "-y"), cwd=site_dir, cancel=cancel)

        await record.append("Removing docker volumes and network...")
        for command in docker_cleanup_commands(site_name):
            result = await self.runner.run(command)
            if not result.success:
                logger.warning("Cleanup for %s failed: %s", site_name, result.error)
                await record.append(f"⚠ Cleanup step failed: {result.error}")

        check_cancelled(cancel)
        await record.append(f"Deleting {site_dir}...")
        await asyncio.to_thread(shutil.rmtree, site_dir)
        await record.append(f"✓ Site {site_name} destroyed completely")


def _network_missing(lines: list[str]) -> bool:
    return any("network" in line.lower() and "not found" in line.lower() for line in lines)
