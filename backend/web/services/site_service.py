"""Site discovery: running apps from ``lando list`` merged with a scan of the sites directory.

Nothing is cached. Every lookup re-reads both sources so a directory that was
moved or renamed between requests is picked up on the next operation.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from config.schema import AppSettings
from core.command.runner import CommandRunner
from core.lando.commands import lando
from core.lando.landofile import LANDOFILE_NAME, LandofileError, landofile_path, parse_landofile

logger = logging.getLogger(__name__)

GLOBAL_APP = "_global_"


class SiteNotFound(KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Site {self.name} not found"


@dataclass
class Site:
    name: str
    dir: str
    running: bool = False
    urls: list[str] = field(default_factory=list)
    recipe: str = "Unknown"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # Keys the web UI already reads.
        data["app"] = data.pop("name")
        data["running"] = "yes" if self.running else "no"
        return data


def default_urls(name: str) -> list[str]:
    return [f"https://{name}.lndo.site"]


def _source_dir(service: dict[str, Any]) -> str | None:
    src = service.get("src")
    if isinstance(src, list):
        src = src[0] if src else None
    if not isinstance(src, str) or not src:
        return None
    path = Path(src)
    if path.name == LANDOFILE_NAME:
        path = path.parent
    return str(path)


def parse_lando_list(stdout: str) -> dict[str, Site]:
    """Sites keyed by directory. Services of one app share a directory, so the first one wins."""
    try:
        services = json.loads(stdout)
    except json.JSONDecodeError as e:
        logger.warning("Unparseable lando list output: %s", e)
        return {}
    if not isinstance(services, list):
        return {}

    sites: dict[str, Site] = {}
    for service in services:
        if not isinstance(service, dict):
            continue
        app = service.get("app")
        site_dir = _source_dir(service)
        if not app or app == GLOBAL_APP or not site_dir or site_dir in sites:
            continue
        urls = service.get("urls") or default_urls(app)
        sites[site_dir] = Site(name=app, dir=site_dir, running=bool(service.get("running")), urls=list(urls))
    return sites


def _read_identity(site_dir: Path) -> tuple[str, str]:
    """Name and recipe from a site's landofile, falling back to the folder name."""
    name, recipe = site_dir.name, "Unknown"
    try:
        data = parse_landofile(landofile_path(site_dir).read_text(encoding="utf-8"))
    except (OSError, LandofileError) as e:
        logger.debug("Could not read %s: %s", landofile_path(site_dir), e)
        return name, recipe
    if data.get("name"):
        name = str(data["name"]).strip()
    if data.get("recipe"):
        recipe = str(data["recipe"]).strip()
    return name, recipe


def scan_sites_directory(sites_directory: str) -> list[tuple[str, str, str]]:
    """``(dir, name, recipe)`` for each direct child holding a landofile."""
    if not sites_directory:
        return []
    root = Path(sites_directory).expanduser()
    try:
        children = sorted(root.iterdir())
    except OSError:
        return []
    found = []
    for child in children:
        if child.is_dir() and landofile_path(child).is_file():
            name, recipe = _read_identity(child)
            found.append((str(child), name, recipe))
    return found


async def list_sites(settings: AppSettings, runner: CommandRunner) -> list[Site]:
    sites: dict[str, Site] = {}
    result = await runner.run(lando(settings.lando_path, "list", "--format", "json"))
    if result.success:
        sites = parse_lando_list(result.stdout)
    else:
        logger.info("lando list failed, falling back to directory scan: %s", result.error)

    for site_dir, name, recipe in await asyncio.to_thread(scan_sites_directory, settings.sites_directory):
        site = sites.get(site_dir)
        if site is None:
            sites[site_dir] = Site(name=name, dir=site_dir, urls=default_urls(name), recipe=recipe)
        else:
            # Docker normalizes app names; the landofile keeps the real one.
            site.name = name
            site.recipe = recipe
            site.urls = default_urls(name)
    return list(sites.values())


async def resolve_site(name: str, settings: AppSettings, runner: CommandRunner) -> Site:
    """Map a site name to its directory. Raises SiteNotFound."""
    for site in await list_sites(settings, runner):
        if site.name == name:
            if not Path(site.dir).is_dir():
                raise SiteNotFound(name)
            return site
    raise SiteNotFound(name)


async def get_site_info(site: Site, settings: AppSettings, runner: CommandRunner) -> dict[str, Any]:
    """Raw landofile text plus ``lando info`` output (empty when lando cannot answer)."""
    config = await asyncio.to_thread(landofile_path(site.dir).read_text, encoding="utf-8")
    info: Any = {}
    result = await runner.run(lando(settings.lando_path, "info", "--format", "json"), cwd=site.dir)
    if result.success:
        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("Unparseable lando info output for %s", site.name)
    return {"config": config, "info": info}
