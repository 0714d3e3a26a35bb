"""Decoding of iCalendar date and date-time tokens into absolute instants.

Tokens are decoded into a tagged result so callers can tell whether the
instant was anchored in UTC (trailing ``Z``) or in the local timezone. All-day
dates become local midnight: the display favours wall-clock rendering over
cross-timezone correctness for date-only values.
"""

import datetime
import logging
from enum import Enum
from typing import NamedTuple, Optional

from dateutil import parser as date_parser

from ..core.exceptions import CalendarDateDecodeError
from ..core.timezone_utils import local_timezone

logger = logging.getLogger(__name__)

UTC_MARKER = "Z"
DATE_TOKEN_LENGTH = 8  # YYYYMMDD
DATETIME_TOKEN_LENGTH = 15  # YYYYMMDDTHHMMSS


class InstantKind(str, Enum):
    """How a decoded instant was anchored."""

    ALL_DAY = "all_day"
    UTC = "utc"
    LOCAL = "local"
    FALLBACK = "fallback"


class DecodedInstant(NamedTuple):
    """Tagged result of decoding one date/time token."""

    value: datetime.datetime
    kind: InstantKind

    @property
    def is_utc(self) -> bool:
        return self.kind is InstantKind.UTC


def _decode_date(token: str, tz: datetime.tzinfo) -> datetime.datetime:
    year = int(token[0:4])
    month = int(token[4:6])
    day = int(token[6:8])
    return datetime.datetime(year, month, day, tzinfo=tz)


def _decode_datetime(token: str, tz: datetime.tzinfo) -> datetime.datetime:
    year = int(token[0:4])
    month = int(token[4:6])
    day = int(token[6:8])
    hour = int(token[9:11])
    minute = int(token[11:13])
    second = int(token[13:15])
    return datetime.datetime(year, month, day, hour, minute, second, tzinfo=tz)


def _decode_fallback(token: str, tz: datetime.tzinfo) -> datetime.datetime:
    try:
        parsed = date_parser.parse(token)
    except (ValueError, OverflowError) as e:
        raise CalendarDateDecodeError(token) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def decode_ical_datetime(
    token: str, tz: Optional[datetime.tzinfo] = None
) -> DecodedInstant:
    """Decode a DTSTART/DTEND value into an aware datetime.

    Args:
        token: Value right of the colon, e.g. "20250301", "20250301T140000Z"
        tz: Local timezone for date-only and floating values (defaults to the
            process local timezone)

    Returns:
        DecodedInstant with the aware datetime and how it was anchored

    Raises:
        CalendarDateDecodeError: If neither the fixed-width forms nor the
            generic parser accept the token
    """
    local_tz = tz or local_timezone()
    has_utc_marker = token.endswith(UTC_MARKER)
    clean = token[: -len(UTC_MARKER)] if has_utc_marker else token

    try:
        if len(clean) == DATE_TOKEN_LENGTH:
            return DecodedInstant(_decode_date(clean, local_tz), InstantKind.ALL_DAY)

        if len(clean) >= DATETIME_TOKEN_LENGTH:
            if has_utc_marker:
                return DecodedInstant(
                    _decode_datetime(clean, datetime.timezone.utc), InstantKind.UTC
                )
            return DecodedInstant(_decode_datetime(clean, local_tz), InstantKind.LOCAL)
    except ValueError:
        logger.debug("Fixed-width decode failed for %r; trying generic parse", token)

    return DecodedInstant(_decode_fallback(token, local_tz), InstantKind.FALLBACK)


def decode_ical_instant(token: str, tz: Optional[datetime.tzinfo] = None) -> datetime.datetime:
    """Decode a token and return only the instant."""
    return decode_ical_datetime(token, tz).value
