"""Mapping of roomstatus exceptions to JSON error responses."""

from __future__ import annotations

import logging
from typing import Any

from ...core.exceptions import (
    CalendarFetchError,
    CalendarParseError,
    ConfigError,
    DeviceAuthConfigError,
    DeviceAuthError,
    GraphAPIError,
    NotAuthenticatedError,
    RoomStatusError,
)

logger = logging.getLogger(__name__)

# Most specific first.
_STATUS_BY_ERROR: list[tuple[type[RoomStatusError], int]] = [
    (NotAuthenticatedError, 401),
    (DeviceAuthConfigError, 500),
    (DeviceAuthError, 400),
    (ConfigError, 400),
    (CalendarFetchError, 502),
    (CalendarParseError, 500),
    (GraphAPIError, 502),
]


def status_for_error(exc: RoomStatusError) -> int:
    """HTTP status for a roomstatus exception (500 when unmapped)."""
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def error_response(exc: RoomStatusError) -> Any:
    """JSON {"error": message} response with the mapped status."""
    from aiohttp import web

    status = status_for_error(exc)
    logger.debug("Returning %d for %s: %s", status, type(exc).__name__, exc)
    return web.json_response({"error": str(exc)}, status=status)


async def read_json_object(request: Any) -> dict[str, Any] | None:
    """Decode the request body as a JSON object; None when it is not one."""
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
