"""aiohttp server wiring for roomstatus: app factory, refresh loop and lifecycle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Any, Optional

import httpx

from ..auth.device_code import DeviceCodeClient
from ..auth.token_store import TokenManager, TokenStore
from ..core.config_loader import Config
from ..core.exceptions import RoomStatusError
from ..core.http_client import close_all_clients, get_shared_client
from ..core.timezone_utils import now_utc
from ..domain.settings_store import RoomSettingsStore
from ..domain.status_service import RoomStatusService

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"


async def _refresh_loop(
    service: RoomStatusService,
    interval: int,
    stop_event: asyncio.Event,
) -> None:
    """Background refresher: immediate refresh then periodic refreshes."""
    logger.debug("Refresh loop starting with interval %d seconds", interval)

    while not stop_event.is_set():
        try:
            await service.refresh()
        except RoomStatusError as e:
            # Keep the previous events; the next tick tries again.
            logger.warning("Scheduled refresh failed: %s", e)
        except Exception:
            logger.exception("Refresh loop unexpected error")

        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(stop_event.wait(), timeout=interval)


def build_services(
    config: Config, http_client: Optional[httpx.AsyncClient] = None
) -> tuple[RoomStatusService, TokenManager, DeviceCodeClient, RoomSettingsStore]:
    """Create the service objects the routes depend on."""
    device_client = DeviceCodeClient(
        tenant_id=config.tenant_id,
        client_id=config.client_id,
        http_client=http_client,
    )
    token_manager = TokenManager(TokenStore(config.token_store_path), device_client)
    settings_store = RoomSettingsStore(config.settings_store_path)
    service = RoomStatusService(
        config,
        settings_store=settings_store,
        token_manager=token_manager,
        http_client=http_client,
    )
    return service, token_manager, device_client, settings_store


def _make_app(  # type: ignore[no-untyped-def]
    service: RoomStatusService,
    token_manager: TokenManager,
    device_client: DeviceCodeClient,
    settings_store: Optional[RoomSettingsStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    static_dir: Path = STATIC_DIR,
):
    """Create aiohttp web application with routes wired to the status service."""
    from aiohttp import web

    from .routes import (
        register_auth_routes,
        register_room_routes,
        register_static_routes,
        register_status_routes,
    )

    app = web.Application()

    register_static_routes(app, static_dir)
    register_status_routes(app, service)
    register_auth_routes(app, device_client, token_manager, now_utc)
    register_room_routes(app, service, token_manager, settings_store, http_client)

    async def _shutdown(_app):  # type: ignore[no-untyped-def]
        logger.info("Application shutdown requested")

    app.on_shutdown.append(_shutdown)
    return app


async def _serve(config: Config, external_stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server and refresh loop until signalled to stop.

    Args:
        config: Runtime configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    from aiohttp import web

    stop_event = external_stop_event or asyncio.Event()
    shared_http_client = await get_shared_client("roomstatus")

    service, token_manager, device_client, settings_store = build_services(
        config, shared_http_client
    )
    app = _make_app(service, token_manager, device_client, settings_store, shared_http_client)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", config.server_bind, config.server_port)
        await runner.cleanup()
        await close_all_clients()
        raise

    logger.info(
        "Server started on %s:%d (%s mode, space %r)",
        config.server_bind,
        config.server_port,
        service.config.display_mode,
        service.config.space_name,
    )

    refresher = asyncio.create_task(
        _refresh_loop(service, config.refresh_interval_seconds, stop_event)
    )

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    refresher.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await refresher

    await runner.cleanup()
    await close_all_clients()
    logger.info("Server shutdown complete")


def start_server(config: Config) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks the calling thread until SIGINT/SIGTERM is received.
    """
    from ..core.logging_config import configure_logging

    configure_logging(debug_mode=config.log_level == "DEBUG")

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
