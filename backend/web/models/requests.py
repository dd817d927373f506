"""Pydantic request models for the Lando GUI web API."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CreateSiteRequest(BaseModel):
    name: str
    recipe: str
    php: str | None = None
    database: str | None = None
    webroot: str | None = None


class MigrateDatabaseRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    php: str | None = None
    database: str | None = None
    admin_ui: bool | None = None


class VerifySettingsRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    lando_path: str = Field("lando", min_length=1)
    sites_directory: str = ""
