"""
Unit tests for roomstatus.calendar.fetcher.ICalFetcher

Covers:
- URL validation
- Accept header and body passthrough
- mapping of HTTP status, timeouts and transport errors to fetch errors
"""

import httpx
import pytest

from roomstatus.calendar.fetcher import ICalFetcher
from roomstatus.core.exceptions import (
    CalendarFetchError,
    CalendarHTTPError,
    CalendarNetworkError,
    CalendarParseError,
    CalendarTimeoutError,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]

FEED_URL = "https://calendar.example.com/room.ics"


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestValidateUrl:
    """Tests for URL validation."""

    @pytest.mark.parametrize("url", [FEED_URL, "http://intranet/room.ics"])
    def test_validate_url_when_http_then_true(self, url: str) -> None:
        assert ICalFetcher.validate_url(url)

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://x/y.ics", "not a url", ""])
    def test_validate_url_when_not_http_then_false(self, url: str) -> None:
        assert not ICalFetcher.validate_url(url)


class TestFetch:
    """Tests for feed download."""

    async def test_fetch_when_success_then_returns_text(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["accept"] = request.headers.get("accept")
            return httpx.Response(200, text="BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n")

        async with client_for(handler) as client:
            text = await ICalFetcher(client=client).fetch(FEED_URL)

        assert text.startswith("BEGIN:VCALENDAR")
        assert seen["accept"] == "text/calendar"

    async def test_fetch_when_status_404_then_http_error(self) -> None:
        async with client_for(lambda request: httpx.Response(404)) as client:
            with pytest.raises(CalendarHTTPError) as exc_info:
                await ICalFetcher(client=client).fetch(FEED_URL)

        assert exc_info.value.status_code == 404
        assert "404" in str(exc_info.value)

    async def test_fetch_when_timeout_then_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with client_for(handler) as client:
            with pytest.raises(CalendarTimeoutError):
                await ICalFetcher(client=client).fetch(FEED_URL)

    async def test_fetch_when_connect_error_then_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with client_for(handler) as client:
            with pytest.raises(CalendarNetworkError) as exc_info:
                await ICalFetcher(client=client).fetch(FEED_URL)

        # Transport failures are never reported as parse failures.
        assert not isinstance(exc_info.value, CalendarParseError)

    async def test_fetch_when_invalid_url_then_fetch_error_without_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with client_for(handler) as client:
            with pytest.raises(CalendarFetchError):
                await ICalFetcher(client=client).fetch("file:///etc/hosts")

    async def test_fetch_when_client_rejects_url_then_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

        async with client_for(handler) as client:
            with pytest.raises(CalendarFetchError) as exc_info:
                await ICalFetcher(client=client).fetch(FEED_URL)

        assert "Invalid calendar URL" in str(exc_info.value)
        assert not isinstance(exc_info.value, CalendarNetworkError)

    async def test_get_when_no_client_then_fetch_error(self) -> None:
        with pytest.raises(CalendarFetchError):
            await ICalFetcher()._get(FEED_URL)

    async def test_fetch_when_shared_client_then_not_closed(self) -> None:
        async with client_for(lambda request: httpx.Response(200, text="x")) as client:
            async with ICalFetcher(client=client) as fetcher:
                await fetcher.fetch(FEED_URL)
            assert not client.is_closed
