"""Current/next meeting resolution for the reference day.

Events for one room are assumed not to overlap. When a feed does contain
overlapping reservations the first one in start order wins the current slot.
"""

import datetime
import logging
from collections.abc import Iterable
from typing import Optional

from ..core.timezone_utils import local_timezone, now_utc
from .models import CalendarEvent, MeetingWindowResult

logger = logging.getLogger(__name__)


def local_day_bounds(
    now: datetime.datetime, tz: Optional[datetime.tzinfo] = None
) -> tuple[datetime.datetime, datetime.datetime]:
    """Return [start of day, start of next day) for the local day containing now.

    Args:
        now: Reference instant (timezone-aware)
        tz: Local timezone (defaults to the process local timezone)

    Returns:
        Tuple of aware datetimes (day_start, day_end)
    """
    local_tz = tz or local_timezone()
    local_date = now.astimezone(local_tz).date()
    day_start = datetime.datetime.combine(local_date, datetime.time(), tzinfo=local_tz)
    day_end = datetime.datetime.combine(
        local_date + datetime.timedelta(days=1), datetime.time(), tzinfo=local_tz
    )
    return day_start, day_end


def events_for_day(
    events: Iterable[CalendarEvent],
    day_start: datetime.datetime,
    day_end: datetime.datetime,
) -> list[CalendarEvent]:
    """Events overlapping [day_start, day_end), stably sorted by start."""
    overlapping = [e for e in events if e.start < day_end and e.end > day_start]
    return sorted(overlapping, key=lambda e: e.start)


def resolve_meeting_window(
    events: Iterable[CalendarEvent],
    now: Optional[datetime.datetime] = None,
    tz: Optional[datetime.tzinfo] = None,
) -> MeetingWindowResult:
    """Select the current and next meeting for the day containing now.

    Args:
        events: Decoded events in any order
        now: Reference instant (defaults to now_utc())
        tz: Local timezone defining the reference day

    Returns:
        MeetingWindowResult with the day's agenda sorted by start
    """
    reference = now or now_utc()
    day_start, day_end = local_day_bounds(reference, tz)
    day_events = events_for_day(events, day_start, day_end)

    current: Optional[CalendarEvent] = None
    upcoming: Optional[CalendarEvent] = None

    for event in day_events:
        if current is None and event.start <= reference < event.end:
            current = event
        elif upcoming is None and event.start > reference:
            upcoming = event

        if current is not None and upcoming is not None:
            break

    logger.debug(
        "Resolved window: %d events for day, current=%s, next=%s",
        len(day_events),
        current.id if current else None,
        upcoming.id if upcoming else None,
    )
    return MeetingWindowResult(
        current_meeting=current,
        next_meeting=upcoming,
        all_events=tuple(day_events),
    )
