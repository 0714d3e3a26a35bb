"""Room status, refresh, iCal lookup and health routes."""

from __future__ import annotations

import logging
from typing import Any

from ...core.exceptions import RoomStatusError
from ...core.timezone_utils import serialize_iso_utc
from ...domain.status_service import RoomStatusService
from .errors import error_response, read_json_object

logger = logging.getLogger(__name__)


def register_status_routes(app: Any, service: RoomStatusService) -> None:
    """Register status and calendar routes.

    Args:
        app: aiohttp web application
        service: Room status service holding the cached events
    """
    from aiohttp import web

    def _status_payload() -> dict[str, Any]:
        payload = service.status().to_api_dict()
        payload["lastRefresh"] = serialize_iso_utc(service.last_refresh)
        payload["lastError"] = service.last_error
        return payload

    async def get_status(_request: Any) -> Any:
        """Current/next meeting resolved against the cached events."""
        return web.json_response(_status_payload())

    async def post_refresh(_request: Any) -> Any:
        """Reload the calendar now instead of waiting for the next tick."""
        try:
            await service.refresh()
        except RoomStatusError as e:
            return error_response(e)
        return web.json_response(_status_payload())

    async def post_ical_calendar(request: Any) -> Any:
        """Fetch an arbitrary feed and return today's meeting window for it."""
        data = await read_json_object(request)
        if data is None:
            return web.json_response({"error": "invalid json"}, status=400)

        ical_url = data.get("icalUrl")
        if not ical_url or not isinstance(ical_url, str):
            return web.json_response({"error": "iCal URL is required"}, status=400)

        try:
            window = await service.resolve_ical(ical_url)
        except RoomStatusError as e:
            logger.warning("iCal lookup failed: %s", e)
            return error_response(e)
        return web.json_response(window.to_api_dict())

    async def get_health(_request: Any) -> Any:
        health = service.health()
        return web.json_response(health, status=200 if health["status"] == "ok" else 503)

    app.router.add_get("/api/status", get_status)
    app.router.add_post("/api/refresh", post_refresh)
    app.router.add_post("/api/ical/calendar", post_ical_calendar)
    app.router.add_get("/api/health", get_health)

    logger.debug("Status routes registered")
