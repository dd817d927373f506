"""Input validation helpers. Each raises HTTPException(400) on bad input."""

import re
from collections.abc import Iterable
from typing import Any

from fastapi import HTTPException

from backend.web.core.config import (
    DATABASE_ENGINES,
    SITE_NAME_MAX_LENGTH,
    SITE_NAME_MIN_LENGTH,
    SITE_NAME_PATTERN,
)

_SITE_NAME_RE = re.compile(SITE_NAME_PATTERN)
_VERSION_RE = re.compile(r"^[0-9][0-9A-Za-z.\-]*$")


def validate_site_name(name: Any) -> str:
    if not name or not isinstance(name, str):
        raise HTTPException(400, "Site name is required")
    if not _SITE_NAME_RE.match(name):
        raise HTTPException(400, "Site name must contain only lowercase letters, numbers, and hyphens")
    if not SITE_NAME_MIN_LENGTH <= len(name) <= SITE_NAME_MAX_LENGTH:
        raise HTTPException(
            400, f"Site name must be between {SITE_NAME_MIN_LENGTH} and {SITE_NAME_MAX_LENGTH} characters"
        )
    return name


def validate_enum(value: Any, allowed: Iterable[str], field_name: str) -> str:
    allowed = list(allowed)
    if value not in allowed:
        raise HTTPException(400, f"Invalid {field_name}. Allowed values: {', '.join(allowed)}")
    return value


def validate_database_spec(spec: str) -> str:
    """``<engine>:<version>``, e.g. ``mariadb:10.6``."""
    engine, sep, version = spec.partition(":")
    if not sep or not _VERSION_RE.match(version):
        raise HTTPException(400, f"Invalid database '{spec}'. Expected <engine>:<version>, e.g. mysql:8.0")
    validate_enum(engine, DATABASE_ENGINES, "database engine")
    return spec


def validate_php_version(version: str) -> str:
    if not re.match(r"^\d+\.\d+$", version):
        raise HTTPException(400, f"Invalid php version '{version}'. Expected e.g. 8.2")
    return version
