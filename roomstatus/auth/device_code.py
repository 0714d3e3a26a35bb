"""OAuth 2.0 device authorization grant against the Microsoft identity platform."""

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import httpx

from ..core.exceptions import DeviceAuthConfigError, DeviceAuthError
from ..core.timezone_utils import now_utc
from .models import DeviceCodeInfo, PollStatus, TokenInfo, TokenPollResult

logger = logging.getLogger(__name__)

AUTHORITY_BASE = "https://login.microsoftonline.com"
DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

DEVICE_CODE_SCOPES = (
    "User.Read Calendars.Read Calendars.ReadWrite Calendars.Read.Shared "
    "Schedule.Read.All offline_access"
)
REFRESH_SCOPES = "User.Read Calendars.Read Calendars.ReadWrite offline_access"

PENDING_ERRORS = frozenset({"authorization_pending", "slow_down"})
FAILED_ERRORS = frozenset({"authorization_declined", "expired_token", "bad_verification_code"})

# Added to the polling interval when the server answers slow_down.
SLOW_DOWN_INCREMENT_SECONDS = 5


class DeviceCodeClient:
    """Client for the device-code sign-in flow.

    The kiosk has no keyboard-friendly browser session, so the user signs in
    on a phone with the displayed code while the device polls for the token.
    """

    def __init__(
        self,
        tenant_id: str = "common",
        client_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime.datetime] = now_utc,
    ) -> None:
        """Initialize the client.

        Args:
            tenant_id: Directory tenant ("common" for multi-tenant apps)
            client_id: Application (client) id registered for the kiosk
            http_client: Optional shared httpx client
            sleep: Awaitable sleep used between polls
            clock: Source of the current UTC time
        """
        self.tenant_id = tenant_id or "common"
        self.client_id = client_id
        self._http_client = http_client
        self._sleep = sleep
        self._clock = clock

    @property
    def token_endpoint(self) -> str:
        return f"{AUTHORITY_BASE}/{self.tenant_id}/oauth2/v2.0/token"

    @property
    def device_code_endpoint(self) -> str:
        return f"{AUTHORITY_BASE}/{self.tenant_id}/oauth2/v2.0/devicecode"

    def _require_client_id(self) -> str:
        if not self.client_id:
            raise DeviceAuthConfigError(
                "Missing Azure client id; set ROOMSTATUS_CLIENT_ID or AZURE_CLIENT_ID"
            )
        return self.client_id

    async def _post_form(self, url: str, form: dict[str, str]) -> tuple[int, dict[str, Any]]:
        client = self._http_client
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.post(url, data=form)
        except httpx.HTTPError as e:
            raise DeviceAuthError(f"Identity endpoint unreachable: {e}") from e
        finally:
            if owns_client:
                await client.aclose()

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        return response.status_code, payload

    async def request_device_code(self) -> DeviceCodeInfo:
        """Request a new device code / user code pair.

        Raises:
            DeviceAuthConfigError: No client id configured
            DeviceAuthError: The identity endpoint rejected the request
        """
        client_id = self._require_client_id()
        status, data = await self._post_form(
            self.device_code_endpoint,
            {"client_id": client_id, "scope": DEVICE_CODE_SCOPES},
        )
        if status >= 400 or "device_code" not in data:
            raise DeviceAuthError(
                data.get("error_description") or "Failed to get device code",
                error_code=data.get("error"),
            )
        info = DeviceCodeInfo.from_response(data)
        logger.info("Device code issued; user code %s expires in %ds", info.user_code, info.expires_in)
        return info

    async def poll_token(self, device_code: str) -> TokenPollResult:
        """Poll the token endpoint once.

        Returns:
            TokenPollResult with PENDING while the user has not finished,
            FAILED when the user declined or the code expired, SUCCESS with
            the token otherwise.

        Raises:
            DeviceAuthError: Any other error answer from the endpoint
        """
        client_id = self._require_client_id()
        status, data = await self._post_form(
            self.token_endpoint,
            {
                "client_id": client_id,
                "grant_type": DEVICE_CODE_GRANT,
                "device_code": device_code,
            },
        )

        if status < 400 and "access_token" in data:
            logger.info("Device code sign-in completed")
            return TokenPollResult(
                status=PollStatus.SUCCESS,
                token=TokenInfo.from_response(data, self._clock()),
            )

        error = data.get("error")
        description = data.get("error_description")
        if error in PENDING_ERRORS:
            return TokenPollResult(status=PollStatus.PENDING, error=error)
        if error in FAILED_ERRORS:
            logger.warning("Device code sign-in failed: %s", error)
            return TokenPollResult(
                status=PollStatus.FAILED, error=error, error_description=description
            )
        raise DeviceAuthError(description or "Failed to get token", error_code=error)

    async def refresh(self, refresh_token: str) -> TokenInfo:
        """Exchange a refresh token for a new token pair.

        Raises:
            DeviceAuthError: The refresh token was rejected
        """
        if not refresh_token:
            raise DeviceAuthError("Refresh token is required")
        client_id = self._require_client_id()
        status, data = await self._post_form(
            self.token_endpoint,
            {
                "client_id": client_id,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": REFRESH_SCOPES,
            },
        )
        if status >= 400 or "access_token" not in data:
            raise DeviceAuthError(
                data.get("error_description") or "Failed to refresh token",
                error_code=data.get("error"),
            )
        token = TokenInfo.from_response(data, self._clock())
        if token.refresh_token is None:
            token = token.model_copy(update={"refresh_token": refresh_token})
        logger.debug("Access token refreshed; expires at %s", token.expires_at.isoformat())
        return token

    async def wait_for_token(self, info: DeviceCodeInfo) -> TokenInfo:
        """Poll until the user completes sign-in.

        Raises:
            DeviceAuthError: Sign-in declined, or the device code expired
        """
        deadline = self._clock() + datetime.timedelta(seconds=info.expires_in)
        interval = max(1, info.interval)

        while self._clock() < deadline:
            await self._sleep(interval)
            result = await self.poll_token(info.device_code)
            if result.status is PollStatus.SUCCESS and result.token is not None:
                return result.token
            if result.status is PollStatus.FAILED:
                raise DeviceAuthError(
                    result.error_description or "Device code sign-in failed",
                    error_code=result.error,
                )
            if result.error == "slow_down":
                interval += SLOW_DOWN_INCREMENT_SECONDS

        raise DeviceAuthError("Device code expired before sign-in completed", "expired_token")
