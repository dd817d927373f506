"""Lando-specific commands, landofile handling and site workflows."""

from .landofile import LandofilePatch
from .migration import DatabaseMigration
from .workflows import NewSite, SiteWorkflows

__all__ = ["DatabaseMigration", "LandofilePatch", "NewSite", "SiteWorkflows"]
