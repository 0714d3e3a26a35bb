"""iCalendar feed parsing and meeting window resolution."""

from .datetime_decoder import DecodedInstant, InstantKind, decode_ical_datetime, decode_ical_instant
from .event_parser import (
    EventRecordBuilder,
    ICalEventParser,
    counter_id_factory,
    default_id_factory,
    parse_ical_events,
)
from .line_unfolder import unfold_lines
from .meeting_window import local_day_bounds, resolve_meeting_window
from .models import CalendarEvent, ICalParseResult, MeetingWindowResult

__all__ = [
    "CalendarEvent",
    "DecodedInstant",
    "EventRecordBuilder",
    "ICalEventParser",
    "ICalParseResult",
    "InstantKind",
    "MeetingWindowResult",
    "counter_id_factory",
    "decode_ical_datetime",
    "decode_ical_instant",
    "default_id_factory",
    "local_day_bounds",
    "parse_ical_events",
    "resolve_meeting_window",
    "unfold_lines",
]
