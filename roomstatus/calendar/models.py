"""Data models for calendar parsing and meeting resolution."""

from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.timezone_utils import serialize_iso_utc


class CalendarEvent(BaseModel):
    """One scheduled reservation of the room or space.

    Instances are disposable: every fetch produces a fresh set and nothing is
    mutated after construction.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="UID from the feed or a generated placeholder")
    subject: str = Field(..., description="Display text of the reservation")
    start: datetime = Field(..., description="Start instant (timezone-aware)")
    end: datetime = Field(..., description="End instant (timezone-aware)")
    location: Optional[str] = Field(default=None, description="Free-text location")
    organizer: Optional[str] = Field(default=None, description="Organizer display name")

    @field_validator("start", "end")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("event instants must be timezone-aware")
        return value

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        """True if instant falls in [start, end)."""
        return self.start <= instant < self.end

    def to_api_dict(self) -> dict[str, Any]:
        """Render the JSON shape consumed by the kiosk page."""
        payload: dict[str, Any] = {
            "id": self.id,
            "subject": self.subject,
            "start": {"dateTime": serialize_iso_utc(self.start)},
            "end": {"dateTime": serialize_iso_utc(self.end)},
        }
        if self.location:
            payload["location"] = self.location
        if self.organizer:
            payload["organizer"] = {"emailAddress": {"name": self.organizer}}
        return payload


class MeetingWindowResult(BaseModel):
    """Current meeting, next meeting and the ordered agenda for the reference day."""

    model_config = ConfigDict(frozen=True)

    current_meeting: Optional[CalendarEvent] = None
    next_meeting: Optional[CalendarEvent] = None
    all_events: tuple[CalendarEvent, ...] = ()

    @property
    def is_busy(self) -> bool:
        return self.current_meeting is not None

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "currentMeeting": self.current_meeting.to_api_dict() if self.current_meeting else None,
            "nextMeeting": self.next_meeting.to_api_dict() if self.next_meeting else None,
            "allEvents": [event.to_api_dict() for event in self.all_events],
        }


class ICalParseResult(BaseModel):
    """Result of parsing one feed: events plus record statistics."""

    events: list[CalendarEvent] = Field(default_factory=list)

    # Parse statistics
    records_seen: int = 0
    records_dropped: int = 0
    date_decode_failures: int = 0
    warnings: list[str] = Field(default_factory=list)

    @property
    def event_count(self) -> int:
        return len(self.events)
