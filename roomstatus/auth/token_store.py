"""Persisted token storage and access-token lifecycle."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..core.exceptions import DeviceAuthError, NotAuthenticatedError
from ..core.json_store import JsonFileStore
from ..core.timezone_utils import now_utc
from .models import TokenInfo

if TYPE_CHECKING:
    from .device_code import DeviceCodeClient

logger = logging.getLogger(__name__)


class TokenStore:
    """Keeps the signed-in token pair on disk across restarts."""

    def __init__(self, path: str | Path) -> None:
        self._store = JsonFileStore(path)

    def load(self) -> TokenInfo | None:
        data = self._store.read()
        if not data:
            return None
        try:
            return TokenInfo.model_validate(data)
        except ValidationError as exc:
            logger.warning("Stored token at %s is invalid; ignoring: %s", self._store.path, exc)
            return None

    def save(self, token: TokenInfo) -> None:
        self._store.write(token.model_dump(mode="json"))
        logger.info("Saved token (expires at %s)", token.expires_at.isoformat())

    def clear(self) -> None:
        self._store.clear()
        logger.info("Cleared stored token")


class TokenManager:
    """Hands out a valid access token, refreshing it when it is about to expire.

    A failed refresh means the grant is no longer usable, so the stored token
    is cleared and NotAuthenticatedError is raised; the kiosk then shows the
    sign-in prompt again.
    """

    def __init__(
        self,
        store: TokenStore,
        client: DeviceCodeClient,
        clock: Callable[[], datetime.datetime] = now_utc,
    ) -> None:
        self.store = store
        self.client = client
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: TokenInfo | None = store.load()

    @property
    def token(self) -> TokenInfo | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_token(self, token: TokenInfo) -> None:
        self._token = token
        self.store.save(token)

    def logout(self) -> None:
        self._token = None
        self.store.clear()

    async def get_access_token(self) -> str:
        """Return a non-expired access token.

        Raises:
            NotAuthenticatedError: Nobody has signed in, or refresh failed
        """
        async with self._lock:
            token = self._token
            if token is None:
                raise NotAuthenticatedError("Not signed in")

            if not token.is_expired(self._clock()):
                return token.access_token

            if not token.refresh_token:
                self.logout()
                raise NotAuthenticatedError("Access token expired and no refresh token is stored")

            logger.info("Access token expired; refreshing")
            try:
                refreshed = await self.client.refresh(token.refresh_token)
            except DeviceAuthError as exc:
                logger.warning("Token refresh failed; clearing stored token: %s", exc)
                self.logout()
                raise NotAuthenticatedError(f"Token refresh failed: {exc}") from exc

            self.set_token(refreshed)
            return refreshed.access_token
