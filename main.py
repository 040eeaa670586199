"""Command-line interface for the MongoDB user directory."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from app.config import Settings, load_settings
from app.store import MongoStore, StoreConnectionError

logger = logging.getLogger("crudapp.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MongoDB user directory")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Bind address (default: CRUDAPP_HOST or 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listening port (default: CRUDAPP_PORT or 8080)",
    )
    serve_parser.add_argument(
        "--log-level",
        default="info",
        choices=("critical", "error", "warning", "info", "debug"),
        help="Logging verbosity (default: info)",
    )

    subparsers.add_parser("check", help="Verify the MongoDB connection and exit")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "check"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(settings: Settings, *, host: str | None, port: int | None, log_level: str) -> None:
    from app.application import create_application
    import uvicorn

    host = host or settings.host
    port = port or settings.port
    logger.info("Server starting on http://%s:%s", host, port)

    app = create_application(settings=settings)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


async def _check(settings: Settings) -> None:
    store = MongoStore(settings)
    try:
        await store.ping()
    finally:
        store.close()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    log_level = getattr(args, "log_level", "info")
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        settings = load_settings()
    except (OSError, ValueError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    if args.command == "check":
        try:
            asyncio.run(_check(settings))
        except StoreConnectionError as exc:
            logger.critical("%s", exc)
            raise SystemExit(1) from exc
        print("MongoDB connection OK.")
    elif args.command == "serve":
        _serve(settings, host=args.host, port=args.port, log_level=log_level)


if __name__ == "__main__":
    main()
