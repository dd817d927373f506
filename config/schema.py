"""Application settings for the Lando GUI backend using Pydantic.

The settings live in a single JSON file (``~/.landoguirc.json``). Keys are
written in camelCase so files created by older GUI versions load unchanged;
snake_case field names are accepted on input as well.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_COMMAND_TIMEOUT = 300.0
DEFAULT_MAX_BUFFER = 10 * 1024 * 1024


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WordPressDefaults(_CamelModel):
    """Admin credentials used when a WordPress site is installed."""

    admin_user: str = Field("admin", min_length=1, description="WordPress admin username")
    admin_password: str = Field("admin", min_length=1, description="WordPress admin password")
    admin_email: str = Field("admin@example.com", min_length=3, description="WordPress admin email")


class OperationSettings(_CamelModel):
    retention_seconds: float = Field(1800.0, gt=0, description="Keep completed operations this long")
    max_records: int = Field(500, gt=0, description="Upper bound on records held in memory")
    reaper_interval_seconds: float = Field(60.0, gt=0, description="How often expired records are evicted")
    command_timeout_seconds: float = Field(DEFAULT_COMMAND_TIMEOUT, gt=0, description="One-shot command timeout")
    max_buffer_bytes: int = Field(DEFAULT_MAX_BUFFER, gt=0, description="Output bound for one-shot commands")


class AppSettings(_CamelModel):
    """Main configuration.

    ``lando_path`` may be ``"auto"``; the loader resolves it to a concrete
    binary before the settings are handed to the rest of the app.
    """

    lando_path: str = Field("auto", description="Path to the lando binary, or 'auto'")
    sites_directory: str = Field("", description="Directory that holds one folder per site")
    wordpress: WordPressDefaults = Field(default_factory=WordPressDefaults)
    operations: OperationSettings = Field(default_factory=OperationSettings)
    setup_complete: bool = Field(False, description="Set once the first-run setup was saved")

    @field_validator("lando_path")
    @classmethod
    def normalize_lando_path(cls, v: str) -> str:
        v = (v or "").strip()
        return v or "auto"

    @field_validator("sites_directory")
    @classmethod
    def normalize_sites_directory(cls, v: str) -> str:
        return (v or "").strip()

