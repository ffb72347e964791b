"""
Command-line interface for the MakanX map engine.

Subcommands:
    layout       fetch an event map and print the fitted booth layout as JSON
    login        log in and persist the session to ``storage_path``
    stub-server  run the in-memory development API with uvicorn
"""

import argparse
import asyncio
import json
import logging
import sys
import time
import tomllib
from pathlib import Path
from typing import Any

import httpx

from . import __version__
from .api import ApiError, MakanxApi
from .canvas import MapCanvas
from .config import (
    ClientConfig,
    ConfigurationError,
    DefaultConfigError,
    create_config_from_args,
)
from .logging_utils import configure_logging
from .stores import JsonFileStorage, KeyValueStorage, MemoryStorage, SessionStore
from .stub_server import create_app, run_uvicorn_in_thread

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="makanx-map", description="MakanX map engine")
    parser.add_argument("--config", type=Path, help="Path to a TOML config file")
    parser.add_argument("--api-base-url", dest="api_base_url", help="Override api_base_url")
    parser.add_argument("--storage-path", dest="storage_path", type=Path, help="Session storage file")
    parser.add_argument("--log-dir", dest="log_dir", type=Path, help="Directory for makanx-map.log")
    parser.add_argument(
        "--log-level-console",
        dest="log_level_console",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level",
    )
    parser.add_argument(
        "--log-json-console", dest="log_json_console", action="store_true", help="JSON console logs"
    )
    parser.add_argument("--log-rotation", dest="log_rotation", help="loguru rotation rule")
    parser.add_argument("--log-retention", dest="log_retention", help="loguru retention rule")
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    layout = sub.add_parser("layout", help="Print the fitted booth layout of an event")
    layout.add_argument("slug", help="Event slug")
    layout.add_argument("--width", type=float, default=1280.0, help="Container width in px")
    layout.add_argument("--height", type=float, default=800.0, help="Container height in px")

    login = sub.add_parser("login", help="Log in and store the session")
    login.add_argument("--email", required=True)
    login.add_argument("--password", required=True)

    stub = sub.add_parser("stub-server", help="Run the development API")
    stub.add_argument("--host", default="127.0.0.1")
    stub.add_argument("--port", type=int, default=8800)

    return parser


def open_storage(config: ClientConfig) -> KeyValueStorage:
    if config.storage_path:
        return JsonFileStorage(config.storage_path)
    return MemoryStorage()


async def fetch_layout(
    config: ClientConfig,
    slug: str,
    width: float,
    height: float,
    token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Fit an event map into a ``width`` x ``height`` container and describe it."""
    async with MakanxApi.from_config(config, token=token, transport=transport) as api:
        snapshot = await api.customer_map(slug)

    canvas = MapCanvas(config.viewing_profile())
    canvas.set_container_size(width, height)
    canvas.load(snapshot.venue, snapshot.booths)
    frame = canvas.frame()
    return {
        "event": snapshot.venue.display_name,
        "image": snapshot.venue.image_url,
        "transform": {
            "translateX": frame.transform.translate_x,
            "translateY": frame.transform.translate_y,
            "scale": frame.transform.scale,
        },
        "booths": [
            {
                "id": shape.booth_id,
                "title": shape.title,
                "vendorId": shape.vendor_id,
                "x": round(shape.rect.x, 2),
                "y": round(shape.rect.y, 2),
                "w": round(shape.rect.w, 2),
                "h": round(shape.rect.h, 2),
            }
            for shape in frame.booths
        ],
    }


async def do_login(config: ClientConfig, email: str, password: str) -> SessionStore:
    session = SessionStore(open_storage(config))
    async with MakanxApi.from_config(config) as api:
        token, user = await api.login(email, password)
    session.login(token, user)
    return session


def run_stub_server(host: str, port: int) -> None:
    logger.info(f"Stub API listening on http://{host}:{port}")
    thread, server = run_uvicorn_in_thread(create_app(), host=host, port=port)
    try:
        while thread.is_alive():
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal (Ctrl+C)...")
    finally:
        server.should_exit = True
        thread.join(timeout=5)
    logger.info("Stub API stopped.")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config, overrides = create_config_from_args(args)
    except (ConfigurationError, DefaultConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except FileNotFoundError as e:
        print(f"Error: config file not found: {e.filename}", file=sys.stderr)
        return 2
    except tomllib.TOMLDecodeError as e:
        print(f"Error: invalid TOML in {args.config}: {e}", file=sys.stderr)
        return 2

    configure_logging(
        log_dir=Path(config.log_dir) if config.log_dir else None,
        console_level=config.log_level_console,
        console_json=config.log_json_console,
        rotation=config.log_rotation,
        retention=config.log_retention,
    )
    for override in overrides:
        logger.info(f"Config: {override.key} = {override.new_value!r} (default {override.default_value!r})")

    if args.command == "stub-server":
        run_stub_server(args.host, args.port)
        return 0

    try:
        if args.command == "layout":
            session = SessionStore(open_storage(config))
            session.restore()
            layout = asyncio.run(
                fetch_layout(config, args.slug, args.width, args.height, token=session.token)
            )
            print(json.dumps(layout, indent=2))
        elif args.command == "login":
            session = asyncio.run(do_login(config, args.email, args.password))
            print(f"Logged in as {session.user.name} ({session.user.role.value})")
    except ApiError as e:
        logger.error(f"API error {e.status}: {e.message}")
        return 1
    except httpx.HTTPError as e:
        logger.error(f"Cannot reach {config.api_base_url}: {e}")
        return 1
    return 0


def cli_main() -> None:
    """Console script entry point for ``makanx-map``."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    cli_main()
