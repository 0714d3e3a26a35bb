"""Command-line entry for roomstatus.

Starts the kiosk server by default. ``--once`` prints today's meeting window
for a feed as JSON and exits; ``--login`` runs the device-code sign-in in the
terminal and stores the token for graph mode.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Sequence
from typing import NoReturn, Optional

from . import _init_logging, run_server
from .core.exceptions import RoomStatusError

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for roomstatus CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="roomstatus",
        description="roomstatus - meeting room status display server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m roomstatus                                   # Start server on default port (8080)
  python -m roomstatus --port 3000                       # Start server on port 3000
  python -m roomstatus --once --ical-url https://...     # Print today's window and exit
  python -m roomstatus --login                           # Sign in for graph mode
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or from ROOMSTATUS_WEB_PORT env var)",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="YAML config file (default: ~/.config/roomstatus/config.yaml)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Fetch the calendar once, print the meeting window as JSON and exit",
    )
    mode.add_argument(
        "--login",
        action="store_true",
        help="Sign in with a device code and store the token",
    )

    parser.add_argument(
        "--ical-url",
        metavar="URL",
        help="Feed URL for --once (overrides the configured ical_url)",
    )

    return parser


async def _run_once(args: argparse.Namespace) -> int:
    from .core.config_loader import load_runtime_config
    from .domain.status_service import RoomStatusService

    cfg = load_runtime_config(args.config)
    if args.ical_url:
        cfg.display_mode = "ical"
        cfg.ical_url = args.ical_url

    if cfg.display_mode == "graph":
        from .api.server import build_services

        service = build_services(cfg)[0]
    else:
        service = RoomStatusService(cfg)

    status = await service.refresh()
    print(json.dumps(status.to_api_dict(), indent=2))
    return 0


async def _run_login(args: argparse.Namespace) -> int:
    from .auth.device_code import DeviceCodeClient
    from .auth.token_store import TokenStore
    from .core.config_loader import load_runtime_config

    cfg = load_runtime_config(args.config)
    client = DeviceCodeClient(tenant_id=cfg.tenant_id, client_id=cfg.client_id)

    info = await client.request_device_code()
    print(info.message or f"Go to {info.verification_uri} and enter the code {info.user_code}")
    token = await client.wait_for_token(info)
    TokenStore(cfg.token_store_path).save(token)
    print(f"Signed in. Token stored at {cfg.token_store_path}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Run the roomstatus CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.ical_url and not args.once:
        parser.error("--ical-url is only valid with --once")

    if not (args.once or args.login):
        run_server(args)
        sys.exit(0)

    _init_logging(os.environ.get("ROOMSTATUS_LOG_LEVEL") or "WARNING")
    runner = _run_once if args.once else _run_login
    try:
        code = asyncio.run(runner(args))
    except RoomStatusError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        code = 1
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
