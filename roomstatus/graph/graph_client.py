"""Microsoft Graph calendar access for the graph display mode."""

import datetime
import logging
from collections.abc import Sequence
from typing import Any, Optional
from urllib.parse import quote

import httpx
from dateutil import parser as date_parser
from pydantic import BaseModel, Field

from ..calendar.meeting_window import local_day_bounds, resolve_meeting_window
from ..calendar.models import CalendarEvent, MeetingWindowResult
from ..core.exceptions import GraphAccessError, GraphAPIError
from ..core.timezone_utils import now_utc, serialize_iso_utc

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
EVENT_SELECT = "subject,start,end,location,organizer,isAllDay"
EVENT_PAGE_SIZE = 50
SCHEDULE_INTERVAL_MINUTES = 30
DEFAULT_SCHEDULE_SUBJECT = "Busy"

ACCESS_ERROR_MESSAGE = (
    "Unable to read the room calendar. Make sure Calendars.Read.Shared is granted "
    "and consented in Azure."
)


class RoomTarget(BaseModel):
    """A bookable room mailbox."""

    email: str = Field(..., description="Room mailbox address")
    name: str = Field(..., description="Display name of the room")


def _parse_graph_datetime(value: Optional[dict[str, Any]]) -> Optional[datetime.datetime]:
    """Parse a Graph dateTimeTimeZone object.

    Graph returns naive date-times in the requested zone; we always request
    UTC, so naive values are UTC.
    """
    if not value or not value.get("dateTime"):
        return None
    try:
        parsed = date_parser.isoparse(value["dateTime"])
    except ValueError:
        logger.warning("Unparseable Graph dateTime: %r", value.get("dateTime"))
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def graph_event_to_calendar_event(
    item: dict[str, Any], fallback_id: str
) -> Optional[CalendarEvent]:
    """Convert a Graph event or schedule item into a CalendarEvent.

    Returns None when the item has no usable start or end.
    """
    start = _parse_graph_datetime(item.get("start"))
    end = _parse_graph_datetime(item.get("end"))
    if start is None or end is None:
        return None

    location = item.get("location")
    if isinstance(location, dict):
        location = location.get("displayName") or None

    organizer = None
    organizer_raw = item.get("organizer")
    if isinstance(organizer_raw, dict):
        organizer = (organizer_raw.get("emailAddress") or {}).get("name")

    return CalendarEvent(
        id=item.get("id") or fallback_id,
        subject=item.get("subject") or DEFAULT_SCHEDULE_SUBJECT,
        start=start,
        end=end,
        location=location or None,
        organizer=organizer,
    )


def _to_events(items: Sequence[dict[str, Any]], prefix: str) -> list[CalendarEvent]:
    events = []
    for index, item in enumerate(items, start=1):
        event = graph_event_to_calendar_event(item, f"{prefix}-{index}")
        if event is None:
            logger.debug("Skipping Graph item without start/end: %r", item.get("subject"))
            continue
        events.append(event)
    return events


def _utc_payload(dt: datetime.datetime) -> dict[str, str]:
    return {"dateTime": serialize_iso_utc(dt) or "", "timeZone": "UTC"}


class GraphCalendarClient:
    """Thin async wrapper over the Graph REST endpoints the kiosk needs."""

    def __init__(
        self,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = GRAPH_BASE_URL,
    ) -> None:
        self.access_token = access_token
        self._http_client = http_client
        self.base_url = base_url.rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send one Graph request and return the decoded JSON body.

        Raises:
            GraphAPIError: Transport failure or non-2xx answer
        """
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }
        client = self._http_client
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.request(
                method, f"{self.base_url}{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Graph request failed: {e}") from e
        finally:
            if owns_client:
                await client.aclose()

        if not response.is_success:
            message = f"Graph {method} {path} failed with {response.status_code}"
            code = None
            try:
                body = response.json()
            except ValueError:
                body = {}
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict):
                message = error.get("message") or message
                code = error.get("code")
            raise GraphAPIError(message, status_code=response.status_code, code=code)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def get_user_info(self) -> dict[str, Any]:
        return await self._request("GET", "/me")

    async def list_calendars(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/me/calendars")
        return data.get("value", [])

    async def _get_schedule(
        self, calendar_email: str, start: datetime.datetime, end: datetime.datetime
    ) -> list[CalendarEvent]:
        data = await self._request(
            "POST",
            "/me/calendar/getSchedule",
            json={
                "schedules": [calendar_email],
                "startTime": _utc_payload(start),
                "endTime": _utc_payload(end),
                "availabilityViewInterval": SCHEDULE_INTERVAL_MINUTES,
            },
        )
        schedules = data.get("value") or []
        if not schedules:
            return []
        return _to_events(schedules[0].get("scheduleItems") or [], "schedule")

    async def _get_calendar_view(
        self, calendar_email: str, start: datetime.datetime, end: datetime.datetime
    ) -> list[CalendarEvent]:
        data = await self._request(
            "GET",
            f"/users/{quote(calendar_email)}/calendar/calendarView",
            params={
                "startDateTime": serialize_iso_utc(start),
                "endDateTime": serialize_iso_utc(end),
                "$select": EVENT_SELECT,
                "$orderby": "start/dateTime",
                "$top": EVENT_PAGE_SIZE,
            },
        )
        return _to_events(data.get("value", []), "view")

    async def get_today_events(
        self,
        now: Optional[datetime.datetime] = None,
        tz: Optional[datetime.tzinfo] = None,
        calendar_id: Optional[str] = None,
        calendar_email: Optional[str] = None,
    ) -> list[CalendarEvent]:
        """Fetch the events of the local day containing now.

        A room mailbox (calendar_email) is read with getSchedule, falling back
        to the mailbox's calendarView. Otherwise the signed-in user's default
        calendar, or the calendar named by calendar_id, is queried.

        Raises:
            GraphAccessError: Neither room endpoint is readable
            GraphAPIError: Any other Graph failure
        """
        day_start, day_end = local_day_bounds(now or now_utc(), tz)

        if calendar_email:
            try:
                return await self._get_schedule(calendar_email, day_start, day_end)
            except GraphAPIError as schedule_error:
                logger.warning("getSchedule failed for %s: %s", calendar_email, schedule_error)
            try:
                return await self._get_calendar_view(calendar_email, day_start, day_end)
            except GraphAPIError as view_error:
                logger.error("Direct calendar access failed for %s: %s", calendar_email, view_error)
                raise GraphAccessError(
                    ACCESS_ERROR_MESSAGE, status_code=view_error.status_code, code=view_error.code
                ) from view_error

        endpoint = f"/me/calendars/{quote(calendar_id)}/events" if calendar_id else "/me/calendar/events"
        start_iso = serialize_iso_utc(day_start)
        end_iso = serialize_iso_utc(day_end)
        data = await self._request(
            "GET",
            endpoint,
            params={
                "$filter": f"start/dateTime ge '{start_iso}' and start/dateTime lt '{end_iso}'",
                "$orderby": "start/dateTime",
                "$select": EVENT_SELECT,
                "$top": EVENT_PAGE_SIZE,
            },
        )
        return _to_events(data.get("value", []), "graph")

    async def get_current_and_next(
        self,
        now: Optional[datetime.datetime] = None,
        tz: Optional[datetime.tzinfo] = None,
        calendar_id: Optional[str] = None,
        calendar_email: Optional[str] = None,
    ) -> MeetingWindowResult:
        reference = now or now_utc()
        events = await self.get_today_events(reference, tz, calendar_id, calendar_email)
        return resolve_meeting_window(events, reference, tz)

    async def quick_book(
        self,
        subject: str,
        duration_minutes: int,
        now: Optional[datetime.datetime] = None,
        room_email: Optional[str] = None,
        room_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """Book the room from now for duration_minutes.

        Args:
            subject: Event subject
            duration_minutes: Length of the booking
            now: Start instant (defaults to now_utc())
            room_email: Room mailbox to invite as a resource attendee
            room_name: Display name for the room (defaults to room_email)

        Returns:
            The created Graph event
        """
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        start = now or now_utc()
        end = start + datetime.timedelta(minutes=duration_minutes)
        event: dict[str, Any] = {
            "subject": subject,
            "start": _utc_payload(start),
            "end": _utc_payload(end),
        }
        if room_email:
            display = room_name or room_email
            event["location"] = {"displayName": display}
            event["attendees"] = [
                {"emailAddress": {"address": room_email, "name": display}, "type": "resource"}
            ]
        logger.info("Quick booking %d min from %s", duration_minutes, serialize_iso_utc(start))
        return await self._request("POST", "/me/calendar/events", json=event)

    async def book_rooms(
        self,
        rooms: Sequence[RoomTarget],
        subject: str,
        booked_by: str,
        start: datetime.datetime,
        end: datetime.datetime,
    ) -> dict[str, Any]:
        """Book one or more rooms for a slot with a single event."""
        if not rooms:
            raise ValueError("At least one room is required")
        if not subject.strip() or not booked_by.strip():
            raise ValueError("subject and booked_by are required")
        if end <= start:
            raise ValueError("end must be after start")

        event = {
            "subject": f"{subject} ({booked_by})",
            "body": {"contentType": "text", "content": f"Booked by: {booked_by}"},
            "start": _utc_payload(start),
            "end": _utc_payload(end),
            "location": {"displayName": " + ".join(room.name for room in rooms)},
            "attendees": [
                {"emailAddress": {"address": room.email, "name": room.name}, "type": "resource"}
                for room in rooms
            ],
        }
        logger.info("Booking %d room(s) from %s", len(rooms), serialize_iso_utc(start))
        return await self._request("POST", "/me/calendar/events", json=event)

    async def end_meeting(
        self, event_id: str, now: Optional[datetime.datetime] = None
    ) -> dict[str, Any]:
        """End a running meeting early by moving its end to now."""
        if not event_id:
            raise ValueError("event_id is required")
        end = now or now_utc()
        logger.info("Ending meeting %s at %s", event_id, serialize_iso_utc(end))
        return await self._request(
            "PATCH", f"/me/events/{quote(event_id, safe='')}", json={"end": _utc_payload(end)}
        )
