"""Environment-based configuration for roomstatus."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


# Environment variable -> (config key, converter). First match wins for
# keys listed more than once.
_ENV_MAPPING: list[tuple[str, str, type]] = [
    ("ROOMSTATUS_DISPLAY_MODE", "display_mode", str),
    ("ROOMSTATUS_SPACE_NAME", "space_name", str),
    ("ROOMSTATUS_ICAL_URL", "ical_url", str),
    ("ROOMSTATUS_CALENDAR_ID", "calendar_id", str),
    ("ROOMSTATUS_CALENDAR_EMAIL", "calendar_email", str),
    ("ROOMSTATUS_TENANT_ID", "tenant_id", str),
    ("AZURE_TENANT_ID", "tenant_id", str),
    ("ROOMSTATUS_CLIENT_ID", "client_id", str),
    ("AZURE_CLIENT_ID", "client_id", str),
    ("ROOMSTATUS_REFRESH_INTERVAL", "refresh_interval_seconds", int),
    ("ROOMSTATUS_WEB_HOST", "server_bind", str),
    ("ROOMSTATUS_WEB_PORT", "server_port", int),
    ("ROOMSTATUS_LOG_LEVEL", "log_level", str),
    ("ROOMSTATUS_TIMEZONE", "timezone", str),
    ("ROOMSTATUS_TOKEN_STORE", "token_store_path", str),
    ("ROOMSTATUS_SETTINGS_STORE", "settings_store_path", str),
]


class ConfigManager:
    """Manages application configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file into os.environ without overriding existing variables.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from ROOMSTATUS_* environment variables.

        Returns:
            Mapping of config keys to values (only keys present in the environment)
        """
        cfg: dict[str, Any] = {}

        for env_key, cfg_key, converter in _ENV_MAPPING:
            if cfg_key in cfg:
                continue
            raw = os.environ.get(env_key)
            if not raw:
                continue
            try:
                cfg[cfg_key] = converter(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and dataclass-like objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
