"""Configuration management for the Lando GUI backend."""

from .loader import load_settings, save_settings
from .schema import AppSettings, OperationSettings, WordPressDefaults

__all__ = ["AppSettings", "OperationSettings", "WordPressDefaults", "load_settings", "save_settings"]
