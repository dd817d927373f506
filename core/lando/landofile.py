"""Structured read/patch/write of a site's ``.lando.yml``.

Changes go through parse -> mutate dict -> serialize, never text surgery.
"""

from __future__ import annotations

import copy
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

LANDOFILE_NAME = ".lando.yml"
ADMIN_UI_SERVICE = "pma"


class LandofileError(ValueError):
    pass


@dataclass
class LandofilePatch:
    """Requested changes. ``None`` leaves the field untouched."""

    php: str | None = None
    database: str | None = None
    admin_ui: bool | None = None

    def is_empty(self) -> bool:
        return self.php is None and self.database is None and self.admin_ui is None


def landofile_path(site_dir: str | Path) -> Path:
    return Path(site_dir) / LANDOFILE_NAME


def parse_landofile(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise LandofileError(f"Invalid {LANDOFILE_NAME}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise LandofileError(f"{LANDOFILE_NAME} must contain a mapping at the top level")
    return data


def dump_landofile(data: dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def read_landofile(site_dir: str | Path) -> dict[str, Any]:
    return parse_landofile(landofile_path(site_dir).read_text(encoding="utf-8"))


def write_landofile(site_dir: str | Path, data: dict[str, Any]) -> Path:
    """Write atomically: temp file in the same directory, then replace."""
    path = landofile_path(site_dir)
    fd, tmp = tempfile.mkstemp(prefix=".lando.", suffix=".yml.tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dump_landofile(data))
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


def database_engine(spec: str | None) -> str | None:
    """``mariadb:10.6`` -> ``mariadb``."""
    if not spec:
        return None
    return str(spec).split(":", 1)[0].strip().lower() or None


def apply_patch(data: dict[str, Any], patch: LandofilePatch, site_name: str | None = None) -> dict[str, Any]:
    """Return a patched copy of *data*."""
    result = copy.deepcopy(data)
    if patch.php is not None or patch.database is not None:
        config = result.get("config")
        if config is None:
            config = {}
        elif not isinstance(config, dict):
            raise LandofileError("'config' must be a mapping")
        if patch.php is not None:
            config["php"] = str(patch.php)
        if patch.database is not None:
            config["database"] = str(patch.database)
        result["config"] = config

    if patch.admin_ui is True:
        _add_admin_ui(result, site_name or str(result.get("name") or ""))
    elif patch.admin_ui is False:
        _remove_admin_ui(result)
    return result


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        value = {}
        data[key] = value
    elif not isinstance(value, dict):
        raise LandofileError(f"'{key}' must be a mapping")
    return value


def _add_admin_ui(data: dict[str, Any], site_name: str) -> None:
    services = _section(data, "services")
    services[ADMIN_UI_SERVICE] = {"type": "phpmyadmin", "hosts": ["database"]}
    if site_name:
        proxy = _section(data, "proxy")
        proxy[ADMIN_UI_SERVICE] = [f"pma-{site_name}.lndo.site"]


def _remove_admin_ui(data: dict[str, Any]) -> None:
    for key in ("services", "proxy"):
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        section.pop(ADMIN_UI_SERVICE, None)
        # An emptied block is removed with its parent key.
        if not section:
            del data[key]


def has_admin_ui(data: dict[str, Any]) -> bool:
    services = data.get("services")
    return isinstance(services, dict) and ADMIN_UI_SERVICE in services


def render_new_site(
    name: str,
    recipe: str,
    php: str | None = None,
    database: str | None = None,
    webroot: str | None = None,
) -> dict[str, Any]:
    config: dict[str, Any] = {"webroot": webroot or ".", "php": str(php or "8.1")}
    if database:
        config["database"] = database
    return {"name": name, "recipe": recipe, "config": config}
