"""HTTP retrieval of iCal feeds."""

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from ..core.exceptions import (
    CalendarFetchError,
    CalendarHTTPError,
    CalendarNetworkError,
    CalendarTimeoutError,
)

logger = logging.getLogger(__name__)

ICAL_ACCEPT_HEADER = "text/calendar"
DEFAULT_TIMEOUT_SECONDS = 30.0


class ICalFetcher:
    """Async HTTP client for downloading iCal feeds.

    Retrieval failures are raised as CalendarFetchError subclasses so callers
    can tell transport problems apart from parse problems. The fetcher never
    retries; the polling loop simply tries again on its next tick.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize ICS fetcher.

        Args:
            timeout: Request timeout in seconds
            client: Optional shared HTTP client for connection reuse
        """
        self.timeout = timeout
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "ICalFetcher":
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    @staticmethod
    def validate_url(url: str) -> bool:
        """Only http(s) URLs with a hostname are fetched."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)

    async def fetch(self, url: str) -> str:
        """Download feed text.

        Args:
            url: Feed URL

        Returns:
            Response body decoded as text

        Raises:
            CalendarFetchError: Invalid URL
            CalendarHTTPError: Non-2xx response
            CalendarTimeoutError: Request timed out
            CalendarNetworkError: Any other transport failure
        """
        if not self.validate_url(url):
            raise CalendarFetchError(f"Refusing to fetch non-HTTP(S) calendar URL: {url!r}")

        if self.client is None:
            async with self:
                return await self._get(url)
        return await self._get(url)

    async def _get(self, url: str) -> str:
        if self.client is None:
            raise CalendarFetchError("Fetcher has no HTTP client; use it as an async context manager")
        logger.debug("Fetching iCal feed from %s", urlparse(url).hostname)
        try:
            response = await self.client.get(
                url,
                headers={"Accept": ICAL_ACCEPT_HEADER},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise CalendarTimeoutError(f"Timed out fetching iCal feed: {e}") from e
        except httpx.InvalidURL as e:
            raise CalendarFetchError(f"Invalid calendar URL: {e}") from e
        except httpx.HTTPError as e:
            raise CalendarNetworkError(f"Network error fetching iCal feed: {e}") from e

        if not response.is_success:
            raise CalendarHTTPError(
                f"Failed to fetch iCal feed: {response.status_code}",
                status_code=response.status_code,
            )

        text = response.text
        logger.debug("Fetched %d characters of iCal content", len(text))
        return text
