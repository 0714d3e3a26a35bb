"""VEVENT record parsing for iCalendar feeds.

The parser walks the unfolded logical lines once. Record state lives in an
explicit EventRecordBuilder rather than in loose variables, and identifiers
for records without a UID come from an injected factory so tests can produce
deterministic output.

Values are taken verbatim: backslash escapes (``\\,``, ``\\n``) are not undone.
"""

import datetime
import itertools
import logging
import random
import re
import time
from collections.abc import Callable, Iterable
from typing import Optional

from ..core.exceptions import CalendarDateDecodeError, CalendarParseError
from .datetime_decoder import decode_ical_instant
from .line_unfolder import unfold_lines
from .models import CalendarEvent, ICalParseResult

logger = logging.getLogger(__name__)

BEGIN_EVENT = "BEGIN:VEVENT"
END_EVENT = "END:VEVENT"

_ORGANIZER_CN_RE = re.compile(r"CN=([^:]+)")
_MAILTO_PREFIX = "mailto:"

IdFactory = Callable[[], str]


def default_id_factory() -> str:
    """Placeholder id built from wall-clock milliseconds and a random component."""
    return f"event-{int(time.time() * 1000)}-{random.random()}"  # nosec B311 - not security relevant


def counter_id_factory(prefix: str = "event") -> IdFactory:
    """Return a factory producing prefix-1, prefix-2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


def extract_organizer(value: str) -> str:
    """Extract an organizer display name from an ORGANIZER value.

    A ``CN=`` parameter wins (text up to the next colon); otherwise a leading
    ``mailto:`` is stripped.
    """
    match = _ORGANIZER_CN_RE.search(value)
    if match:
        return match.group(1)
    if value[: len(_MAILTO_PREFIX)].lower() == _MAILTO_PREFIX:
        return value[len(_MAILTO_PREFIX) :]
    return value


def split_content_line(line: str) -> Optional[tuple[str, str]]:
    """Split a logical line into (property name, value).

    Parameters after the first semicolon (e.g. ``;TZID=...``) are dropped from
    the name. Returns None when there is no colon after a non-empty name.
    """
    colon_index = line.find(":")
    if colon_index <= 0:
        return None
    key = line[:colon_index].split(";", 1)[0]
    return key, line[colon_index + 1 :]


class EventRecordBuilder:
    """Accumulates the fields of one VEVENT record.

    Lifecycle: begin() -> ingest_line()* -> end(). end() returns a completed
    CalendarEvent or None when the record lacks a subject, start or end.
    """

    def __init__(
        self,
        id_factory: IdFactory = default_id_factory,
        tz: Optional[datetime.tzinfo] = None,
        strict: bool = False,
    ) -> None:
        """Initialize the builder.

        Args:
            id_factory: Supplier of placeholder ids for records without UID
            tz: Local timezone for date-only and floating date-times
            strict: Raise CalendarParseError on undecodable dates instead of
                dropping the field
        """
        self.id_factory = id_factory
        self.tz = tz
        self.strict = strict
        self.decode_failures = 0
        self._fields: Optional[dict[str, object]] = None

    @property
    def in_flight(self) -> bool:
        return self._fields is not None

    def begin(self) -> None:
        if self._fields is not None:
            logger.debug("BEGIN:VEVENT while a record is open; discarding open record")
        self._fields = {"id": self.id_factory()}

    def ingest_line(self, line: str) -> None:
        """Apply one logical line to the open record; no-op when none is open."""
        if self._fields is None:
            return

        parts = split_content_line(line)
        if parts is None:
            return
        key, value = parts

        if key == "SUMMARY":
            self._fields["subject"] = value
        elif key == "DTSTART":
            self._set_instant("start", value)
        elif key == "DTEND":
            self._set_instant("end", value)
        elif key == "LOCATION":
            self._fields["location"] = value
        elif key == "ORGANIZER":
            self._fields["organizer"] = extract_organizer(value)
        elif key == "UID":
            self._fields["id"] = value

    def _set_instant(self, field: str, value: str) -> None:
        fields = self._fields
        if fields is None:
            return
        try:
            fields[field] = decode_ical_instant(value, self.tz)
        except CalendarDateDecodeError as e:
            self.decode_failures += 1
            if self.strict:
                raise CalendarParseError(f"Invalid {field} in record: {e}") from e
            logger.warning("Dropping undecodable %s value %r", field, value)
            fields.pop(field, None)

    def end(self) -> Optional[CalendarEvent]:
        """Close the open record and return it if complete."""
        fields, self._fields = self._fields, None
        if fields is None:
            return None

        if not fields.get("subject") or "start" not in fields or "end" not in fields:
            logger.debug("Dropping incomplete record %s", fields.get("id"))
            return None

        return CalendarEvent(
            id=str(fields["id"]),
            subject=str(fields["subject"]),
            start=fields["start"],  # type: ignore[arg-type]
            end=fields["end"],  # type: ignore[arg-type]
            location=fields.get("location"),  # type: ignore[arg-type]
            organizer=fields.get("organizer"),  # type: ignore[arg-type]
        )


class ICalEventParser:
    """Parser turning raw feed text into CalendarEvent records.

    Stateless between calls: every parse() builds its own record builder, so
    one instance may be shared.
    """

    def __init__(
        self,
        id_factory: IdFactory = default_id_factory,
        tz: Optional[datetime.tzinfo] = None,
        strict: bool = False,
    ) -> None:
        self.id_factory = id_factory
        self.tz = tz
        self.strict = strict

    def parse_lines(self, lines: Iterable[str]) -> ICalParseResult:
        """Parse already-unfolded logical lines."""
        builder = EventRecordBuilder(self.id_factory, self.tz, self.strict)
        events: list[CalendarEvent] = []
        records_seen = 0

        for line in lines:
            if line.startswith(BEGIN_EVENT):
                records_seen += 1
                builder.begin()
            elif line.startswith(END_EVENT) and builder.in_flight:
                event = builder.end()
                if event is not None:
                    events.append(event)
            else:
                builder.ingest_line(line)

        if builder.in_flight:
            logger.debug("Feed ended inside an unterminated VEVENT; record dropped")

        result = ICalParseResult(
            events=events,
            records_seen=records_seen,
            records_dropped=records_seen - len(events),
            date_decode_failures=builder.decode_failures,
        )
        if result.date_decode_failures:
            result.warnings.append(
                f"{result.date_decode_failures} date value(s) could not be decoded"
            )
        logger.debug(
            "Parsed %d events from %d records (%d dropped)",
            result.event_count,
            result.records_seen,
            result.records_dropped,
        )
        return result

    def parse(self, text: str) -> ICalParseResult:
        """Parse raw feed text.

        Raises:
            CalendarParseError: Only in strict mode, on an undecodable date
        """
        return self.parse_lines(unfold_lines(text))


def parse_ical_events(
    text: str,
    id_factory: IdFactory = default_id_factory,
    tz: Optional[datetime.tzinfo] = None,
    strict: bool = False,
) -> list[CalendarEvent]:
    """Parse feed text and return the completed events in feed order."""
    return ICalEventParser(id_factory, tz, strict).parse(text).events
