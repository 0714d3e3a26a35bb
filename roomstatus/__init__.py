"""roomstatus - meeting room / bookable space status display.

Keeps imports light so the package can be inspected (and the calendar core
used) without pulling in the web server dependencies.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a plain formatter on stderr so import-time errors and early
    startup messages are visible. Callers may adjust the level later (e.g.
    from config).

    The ROOMSTATUS_DEBUG environment variable (truthy values: "1", "true",
    "yes", "on") forces DEBUG verbosity so parser and fetcher debug logs can be
    surfaced during troubleshooting without changing code.
    """
    import logging
    import os
    import sys

    debug_env = os.environ.get("ROOMSTATUS_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message
        fmt = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        candidate = getattr(logging, level_name.upper(), None)
        if isinstance(candidate, int):
            level = candidate
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the roomstatus kiosk server.

    Args:
        args: Optional command line namespace containing --port and --config

    Behavior:
    - Initialize console logging early using ROOMSTATUS_LOG_LEVEL (env) if present.
    - Load the YAML config file (if any), then overlay environment variables.
    - Apply command line overrides, then block in the aiohttp server until shutdown.
    """
    import logging
    import os

    _init_logging(os.environ.get("ROOMSTATUS_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    from .api.server import start_server
    from .core.config_loader import load_runtime_config

    config_path = getattr(args, "config", None)
    cfg = load_runtime_config(config_path)

    port = getattr(args, "port", None)
    if port is not None:
        cfg.server_port = int(port)
        logger.debug("Applied command line port override: %d", cfg.server_port)

    logging.getLogger().setLevel(getattr(logging, cfg.log_level, logging.INFO))
    logger.debug(
        "Resolved configuration (diagnostic): %s",
        {
            "display_mode": cfg.display_mode,
            "space_name": cfg.space_name,
            "server_bind": cfg.server_bind,
            "server_port": cfg.server_port,
            "refresh_interval_seconds": cfg.refresh_interval_seconds,
        },
    )

    # Blocks until SIGINT/SIGTERM.
    start_server(cfg)
