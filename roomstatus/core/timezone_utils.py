"""Time source and timezone resolution for roomstatus."""

from __future__ import annotations

import datetime
import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser
from dateutil import tz as dateutil_tz

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "ROOMSTATUS_TEST_TIME"
TIMEZONE_ENV = "ROOMSTATUS_TIMEZONE"


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Return current UTC time with tzinfo.

        Can be overridden for testing via the ROOMSTATUS_TEST_TIME environment
        variable (ISO 8601, e.g. "2025-03-01T09:15:00+01:00"). A naive value is
        taken as UTC.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.timezone.utc)
                return dt.replace(tzinfo=datetime.timezone.utc)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)
                # Fall through to real time

        return datetime.datetime.now(datetime.timezone.utc)


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Get current UTC time (convenience function)."""
    return _time_provider.now_utc()


def local_timezone() -> datetime.tzinfo:
    """Return the timezone of the executing process.

    ROOMSTATUS_TIMEZONE (an IANA name) takes precedence over the host setting
    so kiosks can be pinned to the room's zone.
    """
    name = os.environ.get(TIMEZONE_ENV)
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown %s=%r; using host local timezone", TIMEZONE_ENV, name)
    return dateutil_tz.tzlocal()


def resolve_timezone(name: str | None) -> datetime.tzinfo:
    """Resolve an IANA timezone name, defaulting to the process local zone.

    Args:
        name: IANA timezone identifier or None

    Returns:
        tzinfo for the name, or local_timezone() when name is empty or unknown
    """
    if not name:
        return local_timezone()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; falling back to local timezone", name)
        return local_timezone()


def serialize_iso_utc(dt: datetime.datetime | None) -> str | None:
    """Serialize an aware datetime as UTC ISO 8601 with a trailing Z."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    utc = dt.astimezone(datetime.timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
