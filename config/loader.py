"""Settings loader: JSON persistence, auto-detection and verification.

Configuration priority (highest to lowest):
1. Updates posted through ``POST /api/config``
2. User config file (``~/.landoguirc.json`` or ``$LANDO_GUI_CONFIG``)
3. Model defaults, with ``landoPath: "auto"`` resolved by detection
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from config.schema import AppSettings
from core.command.runner import CommandRunner
from core.lando.commands import lando
from core.lando.landofile import LANDOFILE_NAME

logger = logging.getLogger(__name__)

CONFIG_ENV = "LANDO_GUI_CONFIG"
CONFIG_FILENAME = ".landoguirc.json"
VERIFY_TIMEOUT = 5.0

KNOWN_LANDO_PATHS = (
    "/usr/local/bin/lando",
    "/usr/bin/lando",
    "~/.lando/bin/lando",
    "C:\\Program Files\\Lando\\bin\\lando.exe",
    "C:\\ProgramData\\Lando\\bin\\lando.exe",
)

SITES_DIRECTORY_CANDIDATES = ("lando", "sites", "Projects", "projects", "Development", "dev")


def config_path() -> Path:
    override = os.getenv(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / CONFIG_FILENAME


def detect_lando_path() -> str:
    """Known install locations first, then ``PATH``; plain ``lando`` as a last resort."""
    for raw in KNOWN_LANDO_PATHS:
        path = Path(raw).expanduser()
        if path.is_file():
            return str(path)
    found = shutil.which("lando")
    return found or "lando"


def detect_sites_directory(home: Path | None = None) -> str:
    """First candidate directory that already holds a lando site."""
    home = home or Path.home()
    for name in SITES_DIRECTORY_CANDIDATES:
        candidate = home / name
        if not candidate.is_dir():
            continue
        try:
            children = list(candidate.iterdir())
        except OSError:
            continue
        if any((child / LANDOFILE_NAME).is_file() for child in children if child.is_dir()):
            return str(candidate)
    return str(home / "lando")


def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not an object", path)
        return {}
    return data


def _resolve_lando_path(settings: AppSettings) -> AppSettings:
    if settings.lando_path == "auto":
        settings.lando_path = detect_lando_path()
        logger.info("Detected lando at %s", settings.lando_path)
    return settings


def load_settings(path: Path | None = None) -> AppSettings:
    """Load settings from disk. Invalid files fall back to defaults."""
    path = path or config_path()
    data = _load_json(path)
    try:
        settings = AppSettings.model_validate(data)
    except ValidationError as e:
        logger.warning("Config file %s is invalid, using defaults: %s", path, e)
        settings = AppSettings()
    return _resolve_lando_path(settings)


def save_settings(settings: AppSettings, path: Path | None = None) -> Path:
    """Write settings as camelCase JSON, atomically."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(settings.model_dump(by_alias=True), indent=2)
    fd, tmp = tempfile.mkstemp(prefix=".landoguirc.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in updates.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _camel_keys(data: dict[str, Any]) -> dict[str, Any]:
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = _camel_keys(value)
        result[to_camel(key) if "_" in key else key] = value
    return result


def merge_settings(settings: AppSettings, updates: dict[str, Any]) -> AppSettings:
    """Apply a partial update. Keys may be camelCase or snake_case.

    Raises ``pydantic.ValidationError`` when the result is invalid.
    """
    base = settings.model_dump(by_alias=True)
    merged = AppSettings.model_validate(_deep_merge(base, _camel_keys(updates)))
    return _resolve_lando_path(merged)


async def verify_lando(lando_path: str, runner: CommandRunner | None = None) -> bool:
    """True when ``lando version`` runs successfully within a few seconds."""
    runner = runner or CommandRunner(timeout=VERIFY_TIMEOUT)
    result = await runner.run(lando(lando_path, "version"), timeout=VERIFY_TIMEOUT)
    if not result.success:
        logger.info("lando verification failed for %s: %s", lando_path, result.error)
    return result.success


def verify_sites_directory(directory: str | None) -> bool:
    if not directory:
        return False
    return Path(directory).expanduser().is_dir()
