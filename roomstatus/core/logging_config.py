"""
Central logging configuration for roomstatus.

Keeps kiosk logs readable by suppressing verbose debug output from third-party
libraries while leaving roomstatus modules at the requested verbosity.
"""

import logging
import os
from typing import Optional

# Third-party loggers that flood the console at DEBUG.
NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}

PACKAGE_LOGGERS = [
    "roomstatus",
    "roomstatus.calendar",
    "roomstatus.graph",
    "roomstatus.auth",
    "roomstatus.api",
]


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for roomstatus.

    Args:
        debug_mode: Whether to enable debug logging for roomstatus modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        ROOMSTATUS_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ROOMSTATUS_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ROOMSTATUS_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("ROOMSTATUS_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in PACKAGE_LOGGERS:
        logging.getLogger(module).setLevel(package_level)

    if final_debug:
        root_logger.info("Debug logging enabled for roomstatus modules; third-party debug suppressed")
    else:
        root_logger.info("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["roomstatus", "aiohttp.access", "httpx", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
