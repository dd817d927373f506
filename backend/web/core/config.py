"""Configuration constants for the Lando GUI web backend."""

import os

# Server
DEFAULT_HOST = os.environ.get("LANDO_GUI_HOST", "127.0.0.1")
DEFAULT_PORT = 3000
LOG_LEVEL = os.environ.get("LANDO_GUI_LOG_LEVEL", "INFO").upper()

# Validation
SITE_NAME_PATTERN = r"^[a-z0-9-]+$"
SITE_NAME_MIN_LENGTH = 2
SITE_NAME_MAX_LENGTH = 50
ALLOWED_RECIPES = ("wordpress", "drupal10", "drupal9", "laravel", "lamp", "lemp", "symfony", "joomla")
DATABASE_ENGINES = ("mysql", "mariadb", "postgres")

# Streaming
SSE_KEEPALIVE_SEC = 15.0
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}
