"""Unit tests for roomstatus.domain.status_service."""

import asyncio
import datetime
from pathlib import Path

import httpx
import pytest

from roomstatus.auth.device_code import DeviceCodeClient
from roomstatus.auth.models import TokenInfo
from roomstatus.auth.token_store import TokenManager, TokenStore
from roomstatus.core.config_loader import Config
from roomstatus.core.exceptions import (
    CalendarHTTPError,
    ConfigError,
    NotAuthenticatedError,
)
from roomstatus.domain.room_status import RoomState
from roomstatus.domain.settings_store import RoomSettingsStore
from roomstatus.domain.status_service import RoomStatusService

pytestmark = [pytest.mark.unit, pytest.mark.fast]

FEED_URL = "https://calendar.example.com/room.ics"


def _config(**overrides) -> Config:
    values = {"timezone": "UTC", "space_name": "Room 4.12", "ical_url": FEED_URL}
    values.update(overrides)
    return Config(**values)


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestIcalRefresh:
    """Tests for iCal-mode refreshes."""

    async def test_refresh_when_feed_ok_then_busy_with_next(self, sample_ics_room_day, fixed_now) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=sample_ics_room_day)

        service = RoomStatusService(_config(), http_client=_http(handler), clock=lambda: fixed_now)

        status = await service.refresh()

        assert status.state is RoomState.BUSY
        assert status.window.current_meeting.id == "review-1"
        assert status.window.next_meeting.id == "planning-1"
        assert [e.id for e in status.window.all_events] == ["standup-1", "review-1", "planning-1"]
        assert service.last_refresh == fixed_now
        assert service.last_parse_result.records_seen == 4
        assert service.health()["status"] == "ok"
        assert service.health()["eventCount"] == 4

    async def test_status_when_time_moves_then_resolved_against_new_now(
        self, sample_ics_room_day, fixed_now
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=sample_ics_room_day)

        service = RoomStatusService(_config(), http_client=_http(handler), clock=lambda: fixed_now)
        await service.refresh()

        later = service.status(fixed_now + datetime.timedelta(hours=1))

        assert later.state is RoomState.FREE
        assert later.window.current_meeting is None
        assert later.window.next_meeting.id == "planning-1"
        assert later.time_until_next == "in 1h 30m"

    async def test_refresh_when_fetch_fails_then_previous_events_kept(
        self, sample_ics_room_day, fixed_now
    ) -> None:
        answers = [httpx.Response(200, text=sample_ics_room_day), httpx.Response(503)]

        def handler(request: httpx.Request) -> httpx.Response:
            return answers.pop(0)

        service = RoomStatusService(_config(), http_client=_http(handler), clock=lambda: fixed_now)
        await service.refresh()

        with pytest.raises(CalendarHTTPError):
            await service.refresh()

        assert service.status().window.current_meeting.id == "review-1"
        health = service.health()
        assert health["status"] == "degraded"
        assert "503" in health["lastError"]
        assert health["hasData"] is True

    async def test_refresh_when_unexpected_error_then_marked_degraded(self, fixed_now) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("transport exploded")

        service = RoomStatusService(_config(), http_client=_http(handler), clock=lambda: fixed_now)

        with pytest.raises(RuntimeError):
            await service.refresh()

        health = service.health()
        assert health["status"] == "degraded"
        assert "transport exploded" in health["lastError"]

    async def test_refresh_when_no_url_then_config_error(self, fixed_now) -> None:
        service = RoomStatusService(_config(ical_url=None), clock=lambda: fixed_now)

        with pytest.raises(ConfigError):
            await service.refresh()

        assert service.has_data is False
        assert service.status().state is RoomState.FREE

    async def test_refresh_when_concurrent_then_single_fetch(
        self, sample_ics_room_day, fixed_now
    ) -> None:
        calls = 0
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            await release.wait()
            return httpx.Response(200, text=sample_ics_room_day)

        service = RoomStatusService(_config(), http_client=_http(handler), clock=lambda: fixed_now)

        first = asyncio.create_task(service.refresh())
        await asyncio.sleep(0)
        second = asyncio.create_task(service.refresh())
        await asyncio.sleep(0)
        release.set()
        statuses = await asyncio.gather(first, second)

        assert calls == 1
        assert all(s.window.current_meeting.id == "review-1" for s in statuses)

    async def test_resolve_ical_when_url_given_then_cache_untouched(
        self, sample_ics_room_day, fixed_now
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=sample_ics_room_day)

        service = RoomStatusService(_config(ical_url=None), http_client=_http(handler), clock=lambda: fixed_now)

        window = await service.resolve_ical(FEED_URL)

        assert window.current_meeting.id == "review-1"
        assert service.has_data is False


class TestSettingsLayering:
    """Tests for admin settings taking effect on refresh."""

    async def test_refresh_when_settings_override_url_then_new_url_fetched(
        self, tmp_path: Path, sample_ics_room_day, fixed_now
    ) -> None:
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, text=sample_ics_room_day)

        store = RoomSettingsStore(tmp_path / "settings.json")
        store.update({"icalUrl": "https://other.example.com/b.ics", "spaceName": "Aurora"})
        service = RoomStatusService(
            _config(), settings_store=store, http_client=_http(handler), clock=lambda: fixed_now
        )

        status = await service.refresh()

        assert requested == ["https://other.example.com/b.ics"]
        assert status.space_name == "Aurora"


class TestGraphRefresh:
    """Tests for Graph-mode refreshes."""

    async def test_refresh_when_graph_without_token_manager_then_not_authenticated(
        self, fixed_now
    ) -> None:
        service = RoomStatusService(_config(display_mode="graph"), clock=lambda: fixed_now)

        with pytest.raises(NotAuthenticatedError):
            await service.refresh()

    async def test_refresh_when_graph_signed_in_then_events_from_graph(
        self, tmp_path: Path, fixed_now
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer at"
            return httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "id": "g-1",
                            "subject": "Graph Meeting",
                            "start": {"dateTime": "2025-03-10T10:00:00", "timeZone": "UTC"},
                            "end": {"dateTime": "2025-03-10T11:00:00", "timeZone": "UTC"},
                        }
                    ]
                },
            )

        http_client = _http(handler)
        manager = TokenManager(
            TokenStore(tmp_path / "token.json"),
            DeviceCodeClient(client_id="client-1", http_client=http_client),
            clock=lambda: fixed_now,
        )
        manager.set_token(
            TokenInfo(access_token="at", expires_at=fixed_now + datetime.timedelta(hours=1))
        )
        service = RoomStatusService(
            _config(display_mode="graph"),
            token_manager=manager,
            http_client=http_client,
            clock=lambda: fixed_now,
        )

        status = await service.refresh()

        assert status.state is RoomState.BUSY
        assert status.window.current_meeting.id == "g-1"
        assert service.health()["displayMode"] == "graph"
