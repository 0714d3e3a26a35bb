"""Integration tests for the roomstatus HTTP API.

The aiohttp application is built with _make_app() and served by aiohttp's
TestServer. Upstream services (iCal feed host, identity platform, Graph) are
replaced by an httpx.MockTransport so no network access happens.
"""

import datetime
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, Union

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from roomstatus.api.server import _make_app, build_services
from roomstatus.auth.models import TokenInfo
from roomstatus.core.config_loader import Config

pytestmark = pytest.mark.integration

FEED_URL = "https://calendar.example.com/room.ics"
FIXED_NOW = datetime.datetime(2025, 3, 10, 10, 30, tzinfo=datetime.timezone.utc)
LOGIN_HOST = "login.microsoftonline.com"
GRAPH_HOST = "graph.microsoft.com"

Answer = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeUpstream:
    """Routes httpx requests by (method, host, path) to canned answers."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str, str], Answer] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, answer: Answer) -> None:
        parsed = httpx.URL(url)
        self.routes[(method, parsed.host, parsed.path)] = answer

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.host, request.url.path))
        if answer is None:
            return httpx.Response(404, text="no route")
        if callable(answer):
            return answer(request)
        return answer


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def room_config(tmp_path: Path) -> Config:
    return Config(
        space_name="Room 4.12",
        ical_url=FEED_URL,
        timezone="UTC",
        client_id="client-1",
        tenant_id="contoso",
        calendar_email="room412@example.com",
        token_store_path=str(tmp_path / "token.json"),
        settings_store_path=str(tmp_path / "settings.json"),
    )


@pytest.fixture
async def upstream_client(upstream: FakeUpstream, monkeypatch):
    """httpx client whose requests are answered by the fake upstream at a fixed time."""
    monkeypatch.setenv("ROOMSTATUS_TEST_TIME", FIXED_NOW.isoformat())
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    yield http_client
    await http_client.aclose()


@pytest.fixture
def services(room_config: Config, upstream_client: httpx.AsyncClient):
    """(service, token_manager, device_client, settings_store) sharing the fake upstream."""
    return build_services(room_config, upstream_client)


@pytest.fixture
async def api(services, upstream_client: httpx.AsyncClient):
    """Test client for the full application."""
    app = _make_app(*services, upstream_client)
    async with TestClient(TestServer(app)) as client:
        yield client


def _sign_in(token_manager: Any) -> None:
    token_manager.set_token(
        TokenInfo(
            access_token="graph-at",
            refresh_token="graph-rt",
            expires_at=FIXED_NOW + datetime.timedelta(hours=1),
        )
    )


class TestStatusRoutes:
    """Tests for /api/status, /api/refresh and /api/health."""

    async def test_status_when_not_refreshed_then_free_empty(self, api) -> None:
        response = await api.get("/api/status")

        assert response.status == 200
        data = await response.json()
        assert data["state"] == "free"
        assert data["allEvents"] == []
        assert data["spaceName"] == "Room 4.12"
        assert data["lastRefresh"] is None

    async def test_refresh_when_feed_ok_then_busy(self, api, upstream, sample_ics_room_day) -> None:
        upstream.add("GET", FEED_URL, httpx.Response(200, text=sample_ics_room_day))

        response = await api.post("/api/refresh")

        assert response.status == 200
        data = await response.json()
        assert data["isBusy"] is True
        assert data["currentMeeting"]["id"] == "review-1"
        assert data["currentMeeting"]["organizer"] == {"emailAddress": {"name": "dana@example.com"}}
        assert data["nextMeeting"]["subject"] == "Planning"
        assert data["timeRemaining"] == "30 min remaining"
        assert data["lastRefresh"] == "2025-03-10T10:30:00.000Z"

        status = await (await api.get("/api/status")).json()
        assert status["currentMeeting"]["id"] == "review-1"

    async def test_refresh_when_feed_down_then_502_and_health_degraded(self, api, upstream) -> None:
        upstream.add("GET", FEED_URL, httpx.Response(500))

        response = await api.post("/api/refresh")

        assert response.status == 502
        assert "500" in (await response.json())["error"]

        health = await api.get("/api/health")
        assert health.status == 503
        assert (await health.json())["status"] == "degraded"

    async def test_health_when_refreshed_then_ok(self, api, upstream, sample_ics_room_day) -> None:
        upstream.add("GET", FEED_URL, httpx.Response(200, text=sample_ics_room_day))
        await api.post("/api/refresh")

        response = await api.get("/api/health")

        assert response.status == 200
        data = await response.json()
        assert data["hasData"] is True
        assert data["eventCount"] == 4


class TestIcalCalendarRoute:
    """Tests for POST /api/ical/calendar."""

    async def test_ical_calendar_when_body_not_json_then_400(self, api) -> None:
        response = await api.post("/api/ical/calendar", data="not json")

        assert response.status == 400
        assert (await response.json())["error"] == "invalid json"

    async def test_ical_calendar_when_url_missing_then_400(self, api) -> None:
        response = await api.post("/api/ical/calendar", json={})

        assert response.status == 400
        assert (await response.json())["error"] == "iCal URL is required"

    async def test_ical_calendar_when_upstream_fails_then_502(self, api, upstream) -> None:
        upstream.add("GET", "https://other.example.com/x.ics", httpx.Response(404))

        response = await api.post(
            "/api/ical/calendar", json={"icalUrl": "https://other.example.com/x.ics"}
        )

        assert response.status == 502

    async def test_ical_calendar_when_feed_ok_then_window(
        self, api, services, upstream, sample_ics_room_day
    ) -> None:
        upstream.add("GET", "https://other.example.com/x.ics", httpx.Response(200, text=sample_ics_room_day))

        response = await api.post(
            "/api/ical/calendar", json={"icalUrl": "https://other.example.com/x.ics"}
        )

        assert response.status == 200
        data = await response.json()
        assert data["currentMeeting"]["id"] == "review-1"
        assert data["nextMeeting"]["id"] == "planning-1"
        assert [e["id"] for e in data["allEvents"]] == ["standup-1", "review-1", "planning-1"]
        assert not services[0].has_data

    async def test_ical_calendar_when_url_not_http_then_502(self, api) -> None:
        response = await api.post("/api/ical/calendar", json={"icalUrl": "file:///etc/passwd"})

        assert response.status == 502


class TestAuthRoutes:
    """Tests for the device-code sign-in routes."""

    async def test_device_code_when_issued_then_code_returned(self, api, upstream) -> None:
        upstream.add(
            "POST",
            f"https://{LOGIN_HOST}/contoso/oauth2/v2.0/devicecode",
            httpx.Response(
                200,
                json={
                    "user_code": "ABCD-EFGH",
                    "device_code": "dev-1",
                    "verification_uri": "https://microsoft.com/devicelogin",
                    "expires_in": 900,
                    "interval": 5,
                },
            ),
        )

        response = await api.post("/api/auth/device-code")

        assert response.status == 200
        data = await response.json()
        assert data["userCode"] == "ABCD-EFGH"
        assert data["deviceCode"] == "dev-1"

    async def test_device_token_when_no_code_then_400(self, api) -> None:
        response = await api.post("/api/auth/device-token", json={})

        assert response.status == 400
        assert (await response.json())["error"] == "Device code is required"

    async def test_device_token_when_pending_then_pending(self, api, upstream) -> None:
        upstream.add(
            "POST",
            f"https://{LOGIN_HOST}/contoso/oauth2/v2.0/token",
            httpx.Response(400, json={"error": "authorization_pending"}),
        )

        response = await api.post("/api/auth/device-token", json={"deviceCode": "dev-1"})

        assert response.status == 200
        assert await response.json() == {"status": "pending"}

    async def test_device_token_when_declined_then_failed(self, api, upstream) -> None:
        upstream.add(
            "POST",
            f"https://{LOGIN_HOST}/contoso/oauth2/v2.0/token",
            httpx.Response(
                400,
                json={"error": "authorization_declined", "error_description": "User declined"},
            ),
        )

        response = await api.post("/api/auth/device-token", json={"deviceCode": "dev-1"})

        assert await response.json() == {"status": "failed", "error": "User declined"}

    async def test_device_token_when_success_then_token_stored_not_returned(
        self, api, upstream, room_config
    ) -> None:
        upstream.add(
            "POST",
            f"https://{LOGIN_HOST}/contoso/oauth2/v2.0/token",
            httpx.Response(
                200, json={"access_token": "at", "refresh_token": "rt", "expires_in": 3600}
            ),
        )

        response = await api.post("/api/auth/device-token", json={"deviceCode": "dev-1"})

        data = await response.json()
        assert data["status"] == "success"
        assert data["authenticated"] is True
        assert data["expiresIn"] == 3600
        assert "accessToken" not in data
        stored = json.loads(Path(room_config.token_store_path).read_text(encoding="utf-8"))
        assert stored["access_token"] == "at"

        status = await (await api.get("/api/auth/status")).json()
        assert status["authenticated"] is True

    async def test_refresh_when_nothing_stored_then_400(self, api) -> None:
        response = await api.post("/api/auth/refresh")

        assert response.status == 400

    async def test_logout_when_signed_in_then_status_unauthenticated(self, api, services) -> None:
        _sign_in(services[1])

        response = await api.post("/api/auth/logout")

        assert await response.json() == {"authenticated": False}
        status = await (await api.get("/api/auth/status")).json()
        assert status == {"authenticated": False}


class TestRoomRoutes:
    """Tests for Graph-backed booking and the settings endpoints."""

    async def test_calendars_when_not_signed_in_then_401(self, api) -> None:
        response = await api.get("/api/calendars")

        assert response.status == 401

    async def test_calendars_when_signed_in_then_listed(self, api, services, upstream) -> None:
        _sign_in(services[1])
        upstream.add(
            "GET",
            f"https://{GRAPH_HOST}/v1.0/me/calendars",
            httpx.Response(200, json={"value": [{"id": "c1", "name": "Calendar", "color": "auto"}]}),
        )

        response = await api.get("/api/calendars")

        assert await response.json() == {"calendars": [{"id": "c1", "name": "Calendar"}]}

    async def test_quick_book_when_signed_in_then_201_and_room_invited(
        self, api, services, upstream, sample_ics_room_day
    ) -> None:
        _sign_in(services[1])
        upstream.add("GET", FEED_URL, httpx.Response(200, text=sample_ics_room_day))
        upstream.add(
            "POST",
            f"https://{GRAPH_HOST}/v1.0/me/calendar/events",
            httpx.Response(201, json={"id": "new-1"}),
        )

        response = await api.post("/api/room/book", json={"durationMinutes": 30})

        assert response.status == 201
        assert await response.json() == {"event": {"id": "new-1"}}
        booking = next(r for r in upstream.requests if r.method == "POST")
        body = json.loads(booking.content)
        assert body["subject"] == "Ad hoc meeting"
        assert body["end"]["dateTime"] == "2025-03-10T11:00:00.000Z"
        assert body["attendees"][0]["emailAddress"]["address"] == "room412@example.com"

    async def test_quick_book_when_duration_invalid_then_400(self, api) -> None:
        response = await api.post("/api/room/book", json={"durationMinutes": "soon"})

        assert response.status == 400

    async def test_book_slot_when_end_missing_then_400(self, api, services) -> None:
        _sign_in(services[1])

        response = await api.post(
            "/api/room/book-slot",
            json={
                "rooms": [{"email": "a@x.com", "name": "Aurora"}],
                "subject": "Offsite",
                "bookedBy": "Sam",
                "start": "2025-03-10T14:00:00",
            },
        )

        assert response.status == 400

    async def test_book_slot_when_no_booker_then_400(self, api, services) -> None:
        _sign_in(services[1])

        response = await api.post(
            "/api/room/book-slot",
            json={
                "rooms": [{"email": "a@x.com", "name": "Aurora"}],
                "subject": "Offsite",
                "start": "2025-03-10T14:00:00",
                "durationMinutes": 60,
            },
        )

        assert response.status == 400
        assert "required" in (await response.json())["error"]

    async def test_book_slot_when_valid_then_201(self, api, services, upstream) -> None:
        _sign_in(services[1])
        upstream.add(
            "POST",
            f"https://{GRAPH_HOST}/v1.0/me/calendar/events",
            httpx.Response(201, json={"id": "slot-1"}),
        )

        response = await api.post(
            "/api/room/book-slot",
            json={
                "rooms": [{"email": "a@x.com", "name": "Aurora"}],
                "subject": "Offsite",
                "bookedBy": "Sam",
                "start": "2025-03-10T14:00:00",
                "durationMinutes": 60,
            },
        )

        assert response.status == 201
        booking = next(r for r in upstream.requests if r.method == "POST")
        body = json.loads(booking.content)
        assert body["start"]["dateTime"] == "2025-03-10T14:00:00.000Z"
        assert body["end"]["dateTime"] == "2025-03-10T15:00:00.000Z"

    async def test_end_meeting_when_nothing_running_then_400(self, api) -> None:
        response = await api.post("/api/room/end", json={})

        assert response.status == 400
        assert (await response.json())["error"] == "No meeting in progress"

    async def test_end_meeting_when_current_meeting_then_patched(
        self, api, services, upstream, sample_ics_room_day
    ) -> None:
        _sign_in(services[1])
        upstream.add("GET", FEED_URL, httpx.Response(200, text=sample_ics_room_day))
        upstream.add(
            "PATCH",
            f"https://{GRAPH_HOST}/v1.0/me/events/review-1",
            httpx.Response(200, json={"id": "review-1"}),
        )
        await api.post("/api/refresh")

        response = await api.post("/api/room/end")

        assert response.status == 200
        patch = next(r for r in upstream.requests if r.method == "PATCH")
        assert json.loads(patch.content)["end"]["dateTime"] == "2025-03-10T10:30:00.000Z"

    async def test_settings_when_updated_then_applied(self, api) -> None:
        response = await api.put(
            "/api/settings", json={"spaceName": "Aurora", "icalUrl": "https://x.example/a.ics"}
        )

        assert response.status == 200
        data = await response.json()
        assert data["spaceName"] == "Aurora"
        assert data["icalUrl"] == "https://x.example/a.ics"
        assert data["refreshIntervalSeconds"] == 60

        status = await (await api.get("/api/status")).json()
        assert status["spaceName"] == "Aurora"

    async def test_settings_when_invalid_mode_then_400_with_details(self, api) -> None:
        response = await api.put("/api/settings", json={"displayMode": "exchange"})

        assert response.status == 400
        data = await response.json()
        assert data["error"] == "invalid settings"
        assert data["details"]


class TestStaticRoutes:
    """Tests for the kiosk page."""

    async def test_root_when_requested_then_display_page(self, api) -> None:
        response = await api.get("/")

        assert response.status == 200
        assert "text/html" in response.headers["Content-Type"]

    async def test_static_asset_when_requested_then_served(self, api) -> None:
        response = await api.get("/static/display.js")

        assert response.status == 200
