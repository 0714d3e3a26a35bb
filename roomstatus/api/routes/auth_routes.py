"""Device-code sign-in routes."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ...auth.device_code import DeviceCodeClient
from ...auth.models import PollStatus
from ...auth.token_store import TokenManager
from ...core.exceptions import DeviceAuthError
from ...core.timezone_utils import serialize_iso_utc
from .errors import error_response, read_json_object

logger = logging.getLogger(__name__)


def register_auth_routes(
    app: Any,
    device_client: DeviceCodeClient,
    token_manager: TokenManager,
    time_provider: Callable[[], datetime],
) -> None:
    """Register device-code sign-in routes.

    Tokens stay on the server; responses only report expiry.

    Args:
        app: aiohttp web application
        device_client: Client for the identity platform endpoints
        token_manager: Holder of the signed-in token
        time_provider: Source of the current UTC time
    """
    from aiohttp import web

    def _token_summary() -> dict[str, Any]:
        token = token_manager.token
        if token is None:
            return {"authenticated": False}
        return {
            "authenticated": True,
            "expiresIn": token.expires_in(time_provider()),
            "expiresAt": serialize_iso_utc(token.expires_at),
        }

    async def post_device_code(_request: Any) -> Any:
        try:
            info = await device_client.request_device_code()
        except DeviceAuthError as e:
            logger.warning("Device code request failed: %s", e)
            return error_response(e)
        return web.json_response(info.to_api_dict())

    async def post_device_token(request: Any) -> Any:
        data = await read_json_object(request)
        device_code = data.get("deviceCode") if data else None
        if not device_code or not isinstance(device_code, str):
            return web.json_response({"error": "Device code is required"}, status=400)

        try:
            result = await device_client.poll_token(device_code)
        except DeviceAuthError as e:
            return error_response(e)

        if result.status is PollStatus.PENDING:
            return web.json_response({"status": "pending"})
        if result.status is PollStatus.FAILED:
            return web.json_response(
                {"status": "failed", "error": result.error_description or result.error}
            )

        if result.token is not None:
            token_manager.set_token(result.token)
        return web.json_response({"status": "success", **_token_summary()})

    async def post_refresh(request: Any) -> Any:
        data = await read_json_object(request) or {}
        refresh_token = data.get("refreshToken")
        if not refresh_token and token_manager.token is not None:
            refresh_token = token_manager.token.refresh_token
        if not refresh_token:
            return web.json_response({"error": "Refresh token is required"}, status=400)

        try:
            token = await device_client.refresh(refresh_token)
        except DeviceAuthError as e:
            return error_response(e)
        token_manager.set_token(token)
        return web.json_response(_token_summary())

    async def post_logout(_request: Any) -> Any:
        token_manager.logout()
        return web.json_response({"authenticated": False})

    async def get_auth_status(_request: Any) -> Any:
        return web.json_response(_token_summary())

    app.router.add_post("/api/auth/device-code", post_device_code)
    app.router.add_post("/api/auth/device-token", post_device_token)
    app.router.add_post("/api/auth/refresh", post_refresh)
    app.router.add_post("/api/auth/logout", post_logout)
    app.router.add_get("/api/auth/status", get_auth_status)

    logger.debug("Auth routes registered")
