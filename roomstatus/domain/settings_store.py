"""Admin settings persisted next to the config file."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.config_loader import DISPLAY_MODES, Config
from ..core.json_store import JsonFileStore

logger = logging.getLogger(__name__)


class RoomSettings(BaseModel):
    """Settings editable from the admin page.

    Unset fields fall back to the config file values.
    """

    space_name: Optional[str] = Field(default=None, alias="spaceName")
    display_mode: Optional[str] = Field(default=None, alias="displayMode")
    ical_url: Optional[str] = Field(default=None, alias="icalUrl")
    calendar_id: Optional[str] = Field(default=None, alias="calendarId")
    calendar_email: Optional[str] = Field(default=None, alias="calendarEmail")

    model_config = {"populate_by_name": True}

    @field_validator("display_mode")
    @classmethod
    def _known_mode(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        mode = value.lower()
        if mode not in DISPLAY_MODES:
            raise ValueError(f"display mode must be one of {', '.join(DISPLAY_MODES)}")
        return mode

    @field_validator("space_name", "ical_url", "calendar_id", "calendar_email")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class RoomSettingsStore:
    """Reads and writes RoomSettings and layers them over a Config."""

    def __init__(self, path: str | Path) -> None:
        self._store = JsonFileStore(path)

    def load(self) -> RoomSettings:
        data = self._store.read()
        try:
            return RoomSettings.model_validate(data)
        except ValidationError as exc:
            logger.warning("Stored settings are invalid; using defaults: %s", exc)
            return RoomSettings()

    def save(self, settings: RoomSettings) -> None:
        self._store.write(settings.model_dump(by_alias=True, exclude_none=True))
        logger.info("Saved room settings")

    def update(self, changes: dict[str, Any]) -> RoomSettings:
        """Merge changes into the stored settings and persist.

        Args:
            changes: Values keyed by the camelCase API names (e.g. "icalUrl")

        Raises:
            pydantic.ValidationError: A value is invalid
        """
        current = self.load().model_dump(by_alias=True)
        current.update(changes)
        settings = RoomSettings.model_validate(current)
        self.save(settings)
        return settings

    def apply(self, config: Config) -> Config:
        """Return a copy of config with stored settings applied."""
        overrides = self.load().model_dump(exclude_none=True)
        if not overrides:
            return config
        return dataclasses.replace(config, **overrides)
