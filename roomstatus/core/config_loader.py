"""roomstatus.core.config_loader

YAML config loader for roomstatus.

- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
- `load_runtime_config()` layers environment variables (see config_manager)
  over the file values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .config_manager import ConfigManager
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DISPLAY_MODES = ("ical", "graph")
MIN_REFRESH_SECONDS = 15
MAX_REFRESH_SECONDS = 1800
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "roomstatus" / "config.yaml"
DEFAULT_STATE_DIR = Path.home() / ".local" / "share" / "roomstatus"


@dataclass
class Config:
    """Typed configuration for roomstatus.

    Fields:
        display_mode: "ical" (poll a feed URL) or "graph" (Microsoft Graph)
        space_name: name shown on the kiosk
        ical_url: feed URL for ical mode
        calendar_id: Graph calendar id (own calendars)
        calendar_email: room mailbox address (getSchedule)
        tenant_id / client_id: identity application for the device-code flow
        refresh_interval_seconds: polling interval (15..1800)
        server_bind / server_port: HTTP server address
        log_level: logging level name
        timezone: IANA zone of the room (None = host local zone)
        token_store_path / settings_store_path: JSON state files
        quick_book_durations: minutes offered by the quick-book buttons
    """

    display_mode: str = "ical"
    space_name: str = "Meeting Room"
    ical_url: str | None = None
    calendar_id: str | None = None
    calendar_email: str | None = None
    tenant_id: str = "common"
    client_id: str | None = None
    refresh_interval_seconds: int = 60
    server_bind: str = "0.0.0.0"  # nosec: B104 - kiosk server is meant to be reachable on the LAN
    server_port: int = 8080
    log_level: str = "INFO"
    timezone: str | None = None
    token_store_path: str = str(DEFAULT_STATE_DIR / "token.json")
    settings_store_path: str = str(DEFAULT_STATE_DIR / "settings.json")
    quick_book_durations: list[int] = field(default_factory=lambda: [15, 30, 60])

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int; out-of-range refresh intervals
        and unknown display modes are corrected with a warning.
        """
        if data is None:
            data = {}

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

        defaults = cls()

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        def _optional_str(key: str) -> str | None:
            raw = data.get(key)
            if raw is None or str(raw).strip() == "":
                return None
            return str(raw).strip()

        refresh = _coerce_int("refresh_interval_seconds", defaults.refresh_interval_seconds)
        if refresh < MIN_REFRESH_SECONDS:
            logger.warning(
                "refresh_interval_seconds %d below minimum; coercing to %d",
                refresh,
                MIN_REFRESH_SECONDS,
            )
            refresh = MIN_REFRESH_SECONDS
        elif refresh > MAX_REFRESH_SECONDS:
            logger.warning(
                "refresh_interval_seconds %d above maximum; coercing to %d",
                refresh,
                MAX_REFRESH_SECONDS,
            )
            refresh = MAX_REFRESH_SECONDS

        display_mode = str(data.get("display_mode", defaults.display_mode)).lower()
        if display_mode not in DISPLAY_MODES:
            logger.warning("Unknown display_mode %r; using 'ical'", display_mode)
            display_mode = "ical"

        durations_raw = data.get("quick_book_durations", defaults.quick_book_durations)
        try:
            durations = [int(d) for d in durations_raw if int(d) > 0]
        except (TypeError, ValueError):
            logger.warning("Config quick_book_durations=%r is invalid; using defaults", durations_raw)
            durations = defaults.quick_book_durations

        return cls(
            display_mode=display_mode,
            space_name=_optional_str("space_name") or defaults.space_name,
            ical_url=_optional_str("ical_url"),
            calendar_id=_optional_str("calendar_id"),
            calendar_email=_optional_str("calendar_email"),
            tenant_id=_optional_str("tenant_id") or defaults.tenant_id,
            client_id=_optional_str("client_id"),
            refresh_interval_seconds=refresh,
            server_bind=_optional_str("server_bind") or defaults.server_bind,
            server_port=_coerce_int("server_port", defaults.server_port),
            log_level=str(data.get("log_level") or defaults.log_level).upper(),
            timezone=_optional_str("timezone"),
            token_store_path=_optional_str("token_store_path") or defaults.token_store_path,
            settings_store_path=_optional_str("settings_store_path")
            or defaults.settings_store_path,
            quick_book_durations=durations or defaults.quick_book_durations,
        )


def _load_yaml(path: Path) -> Any:
    """Load a YAML document; empty files yield an empty mapping."""
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    return {} if loaded is None else loaded


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              ~/.config/roomstatus/config.yaml.

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ConfigError.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    raw = _load_yaml(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigError("Config file must contain a mapping at top level")
    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s", p)
    return cfg


def load_runtime_config(path: str | None = None, manager: ConfigManager | None = None) -> Config:
    """Load the config file and overlay environment variables on top of it."""
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    file_values: dict[str, Any] = {}
    if p.exists():
        raw = _load_yaml(p)
        if not isinstance(raw, dict):
            raise ConfigError("Config file must contain a mapping at top level")
        file_values = raw

    env_values = (manager or ConfigManager()).load_full_config()
    merged = {**file_values, **env_values}
    cfg = Config.from_dict(merged)
    logger.debug(
        "Runtime config built from %d file keys and %d environment keys",
        len(file_values),
        len(env_values),
    )
    return cfg
