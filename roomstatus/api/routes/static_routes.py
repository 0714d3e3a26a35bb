"""Static file serving routes for the kiosk page."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def register_static_routes(app: Any, static_dir: Path) -> None:
    """Register the kiosk page and its assets.

    Args:
        app: aiohttp web application
        static_dir: Directory holding display.html and its assets
    """
    from aiohttp import web

    async def serve_display(_request: Any) -> Any:
        """Serve the kiosk display page."""
        html_file = static_dir / "display.html"
        if not html_file.exists():
            logger.error("Static HTML file not found: %s", html_file)
            return web.Response(text="Static HTML file not found", status=404)

        return web.FileResponse(html_file)

    app.router.add_get("/", serve_display)
    app.router.add_static("/static/", static_dir)

    logger.debug("Static routes registered")
