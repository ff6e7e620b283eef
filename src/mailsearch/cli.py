"""CLI entry point for the mailsearch server."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point for the mailsearch server."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    log_level = (args.log_level or "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from mailsearch.api.app import CONFIG_ENV, LOG_LEVEL_ENV, load_settings

    # uvicorn builds the app in its own workers; hand the choices over via the environment.
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        os.environ[CONFIG_ENV] = str(config_path.resolve())
    if args.log_level:
        os.environ[LOG_LEVEL_ENV] = args.log_level

    settings = load_settings()

    # Apply CLI overrides
    if args.host:
        settings.server.host = args.host
    if args.port:
        settings.server.port = args.port
    if args.workers:
        settings.server.workers = args.workers

    import uvicorn

    uvicorn.run(
        "mailsearch.api.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        workers=settings.server.workers if not args.reload else 1,
        reload=args.reload,
        log_level=log_level.lower(),
    )


def build_parser() -> argparse.ArgumentParser:
    from mailsearch import __version__

    parser = argparse.ArgumentParser(
        prog="mailsearch",
        description="mailsearch — Email search gateway over Apache Solr",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Server bind address (overrides config)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help="Server port (overrides config)",
    )
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        default=None,
        help="Number of worker processes",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mailsearch {__version__}",
    )
    return parser


if __name__ == "__main__":
    main()
