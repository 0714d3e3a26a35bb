"""Room status payload for the kiosk display.

Single place where the resolved meeting window is turned into the BUSY/FREE
state and the human-readable countdown texts.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..calendar.models import MeetingWindowResult
from ..core.timezone_utils import serialize_iso_utc


class RoomState(str, Enum):
    """Occupancy of the room at the reference instant."""

    BUSY = "busy"
    FREE = "free"


def _split_minutes(delta: datetime.timedelta) -> tuple[int, int]:
    minutes = int(delta.total_seconds() // 60)
    return minutes // 60, minutes % 60


def format_time_remaining(end: datetime.datetime, now: datetime.datetime) -> str:
    """Countdown text until a running meeting ends.

    Args:
        end: End of the current meeting
        now: Reference instant

    Returns:
        "Ending soon" when the end has passed, else "1h 5m remaining" or
        "12 min remaining"
    """
    diff = end - now
    if diff <= datetime.timedelta(0):
        return "Ending soon"
    hours, minutes = _split_minutes(diff)
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    return f"{minutes} min remaining"


def format_time_until(start: datetime.datetime, now: datetime.datetime) -> str:
    """Countdown text until the next meeting starts ("in 1h 5m", "in 12 min")."""
    diff = start - now
    if diff <= datetime.timedelta(0):
        return "Starting now"
    hours, minutes = _split_minutes(diff)
    if hours > 0:
        return f"in {hours}h {minutes}m"
    return f"in {minutes} min"


@dataclass
class RoomStatus:
    """Room state plus the window it was computed from."""

    state: RoomState
    space_name: str
    window: MeetingWindowResult
    now: datetime.datetime
    time_remaining: str | None = None
    time_until_next: str | None = None

    def to_api_dict(self) -> dict[str, Any]:
        payload = self.window.to_api_dict()
        payload.update(
            {
                "spaceName": self.space_name,
                "state": self.state.value,
                "isBusy": self.state is RoomState.BUSY,
                "timeRemaining": self.time_remaining,
                "timeUntilNext": self.time_until_next,
                "now": serialize_iso_utc(self.now),
            }
        )
        return payload


def build_room_status(
    result: MeetingWindowResult, now: datetime.datetime, space_name: str
) -> RoomStatus:
    """Derive the display status from a resolved meeting window."""
    current = result.current_meeting
    upcoming = result.next_meeting
    return RoomStatus(
        state=RoomState.BUSY if current is not None else RoomState.FREE,
        space_name=space_name,
        window=result,
        now=now,
        time_remaining=format_time_remaining(current.end, now) if current else None,
        time_until_next=format_time_until(upcoming.start, now) if upcoming else None,
    )
