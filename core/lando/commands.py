"""Builders for lando and docker command lines."""

from __future__ import annotations

import re
import shlex

LIFECYCLE_ACTIONS: dict[str, tuple[str, ...]] = {
    "start": ("start",),
    "stop": ("stop",),
    "restart": ("restart",),
    "rebuild": ("rebuild", "-y"),
}

WORDPRESS_DOWNLOAD_URL = "https://wordpress.org/latest.tar.gz"


def lando_binary(lando_path: str | None) -> str:
    if not lando_path or lando_path in ("lando", "auto"):
        return "lando"
    return shlex.quote(lando_path)


def lando(lando_path: str | None, *args: str) -> str:
    return " ".join([lando_binary(lando_path), *(shlex.quote(arg) for arg in args)])


def compose_project(site_name: str) -> str:
    """Docker compose project name lando derives from a site name."""
    return re.sub(r"[-_.]+", "", site_name.lower())


def docker_cleanup_commands(site_name: str) -> list[str]:
    """Best-effort removal of volumes and network left behind by ``lando destroy``."""
    project = compose_project(site_name)
    volumes = " ".join(
        shlex.quote(f"{project}_{suffix}") for suffix in ("data_database", "home_appserver", "home_database")
    )
    return [
        f"docker volume rm {volumes} 2>/dev/null || true",
        f"docker network rm {shlex.quote(project + '_default')} 2>/dev/null || true",
    ]


def wordpress_download_command() -> str:
    return (
        f"curl -fsSL {WORDPRESS_DOWNLOAD_URL} -o latest.tar.gz"
        " && tar -xzf latest.tar.gz"
        " && cp -R wordpress/. ."
        " && rm -rf wordpress latest.tar.gz"
    )


def wordpress_install_commands(lando_path: str | None, site_name: str, admin_user: str, admin_password: str, admin_email: str) -> list[str]:
    return [
        lando(
            lando_path,
            "wp", "config", "create",
            "--dbname=wordpress", "--dbuser=wordpress", "--dbpass=wordpress", "--dbhost=database",
            "--skip-check",
        ),
        lando(
            lando_path,
            "wp", "core", "install",
            f"--url=https://{site_name}.lndo.site",
            f"--title={site_name}",
            f"--admin_user={admin_user}",
            f"--admin_password={admin_password}",
            f"--admin_email={admin_email}",
        ),
    ]
