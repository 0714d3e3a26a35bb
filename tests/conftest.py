from collections.abc import AsyncIterator, Generator
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from roomstatus.core.http_client import close_all_clients


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure clock and timezone overrides do not leak between tests.

    Some tests set ROOMSTATUS_TEST_TIME or ROOMSTATUS_TIMEZONE; clear both
    before and after each test.
    """
    for key in ("ROOMSTATUS_TEST_TIME", "ROOMSTATUS_TIMEZONE", "ROOMSTATUS_DEBUG"):
        monkeypatch.delenv(key, raising=False)
    yield
    for key in ("ROOMSTATUS_TEST_TIME", "ROOMSTATUS_TIMEZONE", "ROOMSTATUS_DEBUG"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test to prevent resource leaks."""
    yield
    await close_all_clients()


@pytest.fixture
def berlin() -> ZoneInfo:
    """Deterministic local timezone for day-boundary tests."""
    return ZoneInfo("Europe/Berlin")


@pytest.fixture
def fixed_now() -> datetime:
    """Reference instant used across tests: 2025-03-10 10:30 UTC (a Monday)."""
    return datetime(2025, 3, 10, 10, 30, tzinfo=timezone.utc)


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_room_day() -> str:
    """
    Return a feed with three reservations on 2025-03-10 (UTC) and one on the next day.

    Returns:
        ICS string with:
        - "Standup" 09:00-09:15Z (before fixed_now)
        - "Design Review" 10:00-11:00Z (contains fixed_now), organizer with a CN parameter
        - "Planning" 13:00-14:00Z
        - "Tomorrow Sync" 2025-03-11 09:00-10:00Z
    """
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//roomstatus test//EN\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:standup-1\r\n"
        "SUMMARY:Standup\r\n"
        "DTSTART:20250310T090000Z\r\n"
        "DTEND:20250310T091500Z\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:review-1\r\n"
        "SUMMARY:Design Review\r\n"
        "DTSTART:20250310T100000Z\r\n"
        "DTEND:20250310T110000Z\r\n"
        "LOCATION:Room 4.12\r\n"
        "ORGANIZER;CN=Dana Smith:mailto:dana@example.com\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:planning-1\r\n"
        "SUMMARY:Planning\r\n"
        "DTSTART:20250310T130000Z\r\n"
        "DTEND:20250310T140000Z\r\n"
        "END:VEVENT\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:tomorrow-1\r\n"
        "SUMMARY:Tomorrow Sync\r\n"
        "DTSTART:20250311T090000Z\r\n"
        "DTEND:20250311T100000Z\r\n"
        "END:VEVENT\r\n"
        "END:VCALENDAR\r\n"
    )
