"""Fetch -> parse -> resolve composition behind the kiosk API."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Callable
from typing import Optional

import httpx

from ..auth.token_store import TokenManager
from ..calendar.event_parser import ICalEventParser
from ..calendar.fetcher import ICalFetcher
from ..calendar.meeting_window import resolve_meeting_window
from ..calendar.models import CalendarEvent, ICalParseResult, MeetingWindowResult
from ..core.config_loader import Config
from ..core.exceptions import ConfigError, NotAuthenticatedError, RoomStatusError
from ..core.timezone_utils import now_utc, resolve_timezone, serialize_iso_utc
from ..graph.graph_client import GraphCalendarClient
from .room_status import RoomStatus, build_room_status
from .settings_store import RoomSettingsStore

logger = logging.getLogger(__name__)


class RoomStatusService:
    """Keeps the room's events for today and answers status queries.

    refresh() downloads and parses the calendar (iCal feed or Graph) and
    caches the events. status() resolves the cached events against the
    current time, so countdowns and the current/next selection stay accurate
    between refreshes. Only one refresh runs at a time; a caller arriving while
    one is running waits for it and returns the status it left behind.
    """

    def __init__(
        self,
        config: Config,
        settings_store: Optional[RoomSettingsStore] = None,
        token_manager: Optional[TokenManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime.datetime] = now_utc,
    ) -> None:
        self.base_config = config
        self.settings_store = settings_store
        self.token_manager = token_manager
        self.http_client = http_client
        self._clock = clock
        self._lock = asyncio.Lock()

        self._events: Optional[list[CalendarEvent]] = None
        self.last_parse_result: Optional[ICalParseResult] = None
        self.last_refresh: Optional[datetime.datetime] = None
        self.last_error: Optional[str] = None

    @property
    def config(self) -> Config:
        """Config file values with admin settings applied."""
        if self.settings_store is None:
            return self.base_config
        return self.settings_store.apply(self.base_config)

    @property
    def timezone(self) -> datetime.tzinfo:
        return resolve_timezone(self.config.timezone)

    @property
    def has_data(self) -> bool:
        return self._events is not None

    async def fetch_ical(self, url: str) -> ICalParseResult:
        """Download and parse one feed without touching the cache.

        Raises:
            CalendarFetchError: Retrieval failed
            CalendarParseError: Strict parsing failed
        """
        fetcher = ICalFetcher(client=self.http_client)
        text = await fetcher.fetch(url)
        result = ICalEventParser(tz=self.timezone).parse(text)
        logger.debug(
            "Parsed %d events from %d records (%d dropped)",
            result.event_count,
            result.records_seen,
            result.records_dropped,
        )
        return result

    async def resolve_ical(
        self, url: str, now: Optional[datetime.datetime] = None
    ) -> MeetingWindowResult:
        """Fetch a feed and resolve today's window for it."""
        result = await self.fetch_ical(url)
        return resolve_meeting_window(result.events, now or self._clock(), self.timezone)

    async def _load_events(self, config: Config, now: datetime.datetime) -> list[CalendarEvent]:
        if config.display_mode == "graph":
            if self.token_manager is None:
                raise NotAuthenticatedError("Graph mode requires a signed-in account")
            access_token = await self.token_manager.get_access_token()
            client = GraphCalendarClient(access_token, http_client=self.http_client)
            return await client.get_today_events(
                now,
                self.timezone,
                calendar_id=config.calendar_id,
                calendar_email=config.calendar_email,
            )

        if not config.ical_url:
            raise ConfigError("No iCal URL configured")
        result = await self.fetch_ical(config.ical_url)
        self.last_parse_result = result
        return result.events

    async def refresh(self) -> RoomStatus:
        """Reload events from the configured source.

        Raises:
            RoomStatusError: The source could not be read; the previous
                events stay cached and last_error is set
        """
        if self._lock.locked():
            logger.debug("Refresh already in progress; waiting for it")
            async with self._lock:
                return self.status()

        async with self._lock:
            config = self.config
            now = self._clock()
            try:
                events = await self._load_events(config, now)
            except RoomStatusError as e:
                self.last_error = str(e)
                logger.warning("Calendar refresh failed (%s): %s", config.display_mode, e)
                raise
            except Exception as e:
                self.last_error = f"Unexpected refresh error: {e}"
                logger.exception("Unexpected error refreshing calendar (%s)", config.display_mode)
                raise

            self._events = events
            self.last_refresh = now
            self.last_error = None
            logger.info("Calendar refreshed: %d events", len(events))
            return self.status(now)

    def status(self, now: Optional[datetime.datetime] = None) -> RoomStatus:
        """Resolve cached events against now (empty agenda before the first refresh)."""
        reference = now or self._clock()
        window = resolve_meeting_window(self._events or [], reference, self.timezone)
        return build_room_status(window, reference, self.config.space_name)

    def health(self) -> dict[str, object]:
        return {
            "status": "ok" if self.last_error is None else "degraded",
            "displayMode": self.config.display_mode,
            "hasData": self.has_data,
            "lastRefresh": serialize_iso_utc(self.last_refresh),
            "lastError": self.last_error,
            "eventCount": len(self._events or []),
        }
