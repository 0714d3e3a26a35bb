"""Booking, calendar listing and settings routes."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

import httpx
from dateutil import parser as date_parser
from pydantic import ValidationError

from ...auth.token_store import TokenManager
from ...core.exceptions import RoomStatusError
from ...domain.settings_store import RoomSettingsStore
from ...domain.status_service import RoomStatusService
from ...graph.graph_client import GraphCalendarClient, RoomTarget
from .errors import error_response, read_json_object

logger = logging.getLogger(__name__)

DEFAULT_QUICK_BOOK_SUBJECT = "Ad hoc meeting"


def _parse_slot_time(value: Any, tz: datetime.tzinfo) -> Optional[datetime.datetime]:
    """Parse an ISO 8601 slot boundary; naive values are in the room's zone."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = date_parser.isoparse(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def register_room_routes(
    app: Any,
    service: RoomStatusService,
    token_manager: TokenManager,
    settings_store: Optional[RoomSettingsStore],
    http_client: Optional[httpx.AsyncClient] = None,
) -> None:
    """Register Graph-backed room routes and the settings endpoints.

    Args:
        app: aiohttp web application
        service: Room status service (refreshed after bookings)
        token_manager: Source of Graph access tokens
        settings_store: Optional persisted admin settings
        http_client: Optional shared HTTP client for Graph calls
    """
    from aiohttp import web

    async def _graph_client() -> GraphCalendarClient:
        access_token = await token_manager.get_access_token()
        return GraphCalendarClient(access_token, http_client=http_client)

    async def _refresh_after_change() -> None:
        try:
            await service.refresh()
        except RoomStatusError as e:
            logger.warning("Refresh after booking change failed: %s", e)

    async def get_calendars(_request: Any) -> Any:
        try:
            client = await _graph_client()
            calendars = await client.list_calendars()
        except RoomStatusError as e:
            return error_response(e)
        return web.json_response(
            {"calendars": [{"id": c.get("id"), "name": c.get("name")} for c in calendars]}
        )

    async def post_quick_book(request: Any) -> Any:
        data = await read_json_object(request)
        if data is None:
            return web.json_response({"error": "invalid json"}, status=400)

        config = service.config
        try:
            duration = int(data.get("durationMinutes", config.quick_book_durations[0]))
        except (TypeError, ValueError):
            return web.json_response({"error": "durationMinutes must be an integer"}, status=400)
        if duration <= 0:
            return web.json_response({"error": "durationMinutes must be positive"}, status=400)

        subject = data.get("subject") or DEFAULT_QUICK_BOOK_SUBJECT
        try:
            client = await _graph_client()
            created = await client.quick_book(
                subject,
                duration,
                room_email=config.calendar_email,
                room_name=config.space_name,
            )
        except RoomStatusError as e:
            return error_response(e)

        await _refresh_after_change()
        return web.json_response({"event": created}, status=201)

    async def post_book_slot(request: Any) -> Any:
        data = await read_json_object(request)
        if data is None:
            return web.json_response({"error": "invalid json"}, status=400)

        try:
            rooms = [RoomTarget.model_validate(r) for r in data.get("rooms") or []]
        except ValidationError:
            return web.json_response({"error": "rooms must have email and name"}, status=400)

        tz = service.timezone
        start = _parse_slot_time(data.get("start"), tz)
        end = _parse_slot_time(data.get("end"), tz)
        if start is not None and end is None and data.get("durationMinutes"):
            try:
                end = start + datetime.timedelta(minutes=int(data["durationMinutes"]))
            except (TypeError, ValueError):
                end = None
        if start is None or end is None:
            return web.json_response(
                {"error": "start and end (or durationMinutes) are required"}, status=400
            )

        try:
            client = await _graph_client()
            created = await client.book_rooms(
                rooms,
                str(data.get("subject") or ""),
                str(data.get("bookedBy") or ""),
                start,
                end,
            )
        except ValueError as e:
            return web.json_response({"error": str(e)}, status=400)
        except RoomStatusError as e:
            return error_response(e)

        await _refresh_after_change()
        return web.json_response({"event": created}, status=201)

    async def post_end_meeting(request: Any) -> Any:
        data = await read_json_object(request) or {}
        event_id = data.get("eventId")
        if not event_id:
            current = service.status().window.current_meeting
            event_id = current.id if current else None
        if not event_id:
            return web.json_response({"error": "No meeting in progress"}, status=400)

        try:
            client = await _graph_client()
            updated = await client.end_meeting(event_id)
        except RoomStatusError as e:
            return error_response(e)

        await _refresh_after_change()
        return web.json_response({"event": updated})

    async def get_settings(_request: Any) -> Any:
        config = service.config
        return web.json_response(
            {
                "spaceName": config.space_name,
                "displayMode": config.display_mode,
                "icalUrl": config.ical_url,
                "calendarId": config.calendar_id,
                "calendarEmail": config.calendar_email,
                "refreshIntervalSeconds": config.refresh_interval_seconds,
                "quickBookDurations": config.quick_book_durations,
            }
        )

    async def put_settings(request: Any) -> Any:
        if settings_store is None:
            return web.json_response({"error": "settings store not available"}, status=501)
        data = await read_json_object(request)
        if data is None:
            return web.json_response({"error": "invalid json"}, status=400)

        try:
            settings_store.update(data)
        except ValidationError as e:
            return web.json_response(
                {"error": "invalid settings", "details": e.errors(include_context=False)},
                status=400,
            )
        except OSError:
            logger.exception("Failed to persist settings")
            return web.json_response({"error": "failed to save settings"}, status=500)

        await _refresh_after_change()
        return await get_settings(request)

    app.router.add_get("/api/calendars", get_calendars)
    app.router.add_post("/api/room/book", post_quick_book)
    app.router.add_post("/api/room/book-slot", post_book_slot)
    app.router.add_post("/api/room/end", post_end_meeting)
    app.router.add_get("/api/settings", get_settings)
    app.router.add_put("/api/settings", put_settings)

    logger.debug("Room routes registered")
