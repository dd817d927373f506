"""Database engine migration: export, reconfigure, destroy, recreate, import, cleanup.

The destroy step wipes the old database. The exported backup is the only way
back from that point on, so nothing destructive runs until the export has
succeeded and its artifact has been found on disk. There is no automatic
rollback: a failure stops the workflow and leaves instructions in the log.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from config.schema import AppSettings
from core.command.streaming import OperationCancelled, StreamingExecutor, check_cancelled
from core.operations.registry import OperationRecord

from .commands import lando
from .landofile import LandofilePatch, apply_patch, read_landofile, write_landofile

logger = logging.getLogger(__name__)

TOTAL_STEPS = 6
BACKUP_PREFIX = "lando-gui-migration"


class BackupNotFound(RuntimeError):
    pass


def backup_stem(now: float | None = None) -> str:
    stamp = time.strftime("%Y%m%d-%H%M%S", time.localtime(now))
    return f"{BACKUP_PREFIX}-{stamp}"


def find_backup_artifact(site_dir: str | Path, stem: str, before: set[str]) -> Path:
    """Locate the file the export actually produced.

    lando may append its own suffix (``.gz``) to the requested name, so the
    newest new file starting with *stem* wins over the requested name.
    """
    candidates = [
        p
        for p in Path(site_dir).iterdir()
        if p.is_file() and p.name.startswith(stem) and p.name not in before
    ]
    if not candidates:
        raise BackupNotFound(f"Export finished but no backup file starting with '{stem}' was found in {site_dir}")
    return max(candidates, key=lambda p: p.stat().st_mtime)


class DatabaseMigration:
    def __init__(self, settings: AppSettings, executor: StreamingExecutor) -> None:
        self.settings = settings
        self.executor = executor
        self.step = ""
        self.backup: Path | None = None

    def lando(self, *args: str) -> str:
        return lando(self.settings.lando_path, *args)

    async def read_config(self, site_dir: str) -> dict[str, Any]:
        return await asyncio.to_thread(read_landofile, site_dir)

    async def write_config(self, site_dir: str, data: dict[str, Any]) -> None:
        await asyncio.to_thread(write_landofile, site_dir, data)

    async def _begin(self, record: OperationRecord, number: int, step: str, message: str, cancel: asyncio.Event | None) -> None:
        check_cancelled(cancel)
        self.step = step
        await record.append(f"[{number}/{TOTAL_STEPS}] {message}")

    async def run(
        self,
        site_name: str,
        site_dir: str,
        patch: LandofilePatch,
        record: OperationRecord,
        cancel: asyncio.Event | None = None,
    ) -> None:
        try:
            await self._run_steps(site_name, site_dir, patch, record, cancel)
        except OperationCancelled as e:
            await self._report_failure(record, e)
            raise
        except Exception as e:
            await self._report_failure(record, e)
            if not record.completed:
                await record.complete(False, f"Migration failed during {self.step}: {e}")
            raise

    async def _run_steps(
        self,
        site_name: str,
        site_dir: str,
        patch: LandofilePatch,
        record: OperationRecord,
        cancel: asyncio.Event | None,
    ) -> None:
        await self._begin(record, 1, "export", "Exporting database backup...", cancel)
        stem = backup_stem()
        before = {p.name for p in Path(site_dir).iterdir()}
        await self.executor.stream(record, self.lando("db-export", f"{stem}.sql"), cwd=site_dir, cancel=cancel)
        self.backup = await asyncio.to_thread(find_backup_artifact, site_dir, stem, before)
        await record.append(f"Backup saved to {self.backup.name}")

        await self._begin(record, 2, "reconfigure", "Updating .lando.yml...", cancel)
        current = await self.read_config(site_dir)
        updated = apply_patch(current, patch, site_name)
        await self.write_config(site_dir, updated)
        for line in _describe_patch(patch):
            await record.append(line)

        await self._begin(record, 3, "destroy", "Destroying old environment...", cancel)
        await self.executor.stream(record, self.lando("destroy", "-y"), cwd=site_dir, cancel=cancel)

        await self._begin(record, 4, "recreate", "Starting site with the new configuration...", cancel)
        await self.executor.stream(record, self.lando("start"), cwd=site_dir, cancel=cancel)

        await self._begin(record, 5, "import", f"Importing {self.backup.name}...", cancel)
        await self.executor.stream(record, self.lando("db-import", self.backup.name), cwd=site_dir, cancel=cancel)

        await self._begin(record, 6, "cleanup", "Removing backup file...", cancel)
        try:
            await asyncio.to_thread(self.backup.unlink)
            self.backup = None
        except OSError as e:
            logger.warning("Could not delete migration backup %s: %s", self.backup, e)
            await record.append(f"⚠ Could not delete {self.backup.name}: {e}")

        await record.append(f"✓ Database migration for {site_name} complete")

    async def _report_failure(self, record: OperationRecord, error: Exception) -> None:
        if record.completed:
            return
        logger.warning("Migration step %s failed: %s", self.step, error)
        await record.append(f"✗ Migration failed during {self.step}: {error}")
        await record.append("⚠ The site may be in an inconsistent state. No automatic rollback was attempted.")
        if self.backup is not None:
            await record.append(f"Your database backup was kept at {self.backup}")
        await record.append(
            "Run a full rebuild (lando rebuild -y), then restore the backup with lando db-import if data is missing."
        )


def _describe_patch(patch: LandofilePatch) -> list[str]:
    lines = []
    if patch.php is not None:
        lines.append(f"  php: {patch.php}")
    if patch.database is not None:
        lines.append(f"  database: {patch.database}")
    if patch.admin_ui is not None:
        lines.append(f"  phpMyAdmin: {'enabled' if patch.admin_ui else 'removed'}")
    return lines
