"""Room status domain logic."""

from .room_status import (
    RoomState,
    RoomStatus,
    build_room_status,
    format_time_remaining,
    format_time_until,
)
from .settings_store import RoomSettings, RoomSettingsStore
from .status_service import RoomStatusService

__all__ = [
    "RoomSettings",
    "RoomSettingsStore",
    "RoomState",
    "RoomStatus",
    "RoomStatusService",
    "build_room_status",
    "format_time_remaining",
    "format_time_until",
]
