# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""OmniPulse CLI: connectivity check and one-off log delivery.

Usage:
    omnipulse ping [--api-url URL] [--ingest-key KEY] [--app-name NAME]
    omnipulse send-log MESSAGE [--level LEVEL] [--tag KEY=VALUE ...]

Connection settings default to the ``OMNIPULSE_*`` environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from . import logging_config
from .client import close, init
from .config import OmniPulseConfig
from .errors import OmniPulseError
from .events import LogLevel

logger = structlog.get_logger("omnipulse.cli")


def _config_from_args(args: argparse.Namespace) -> OmniPulseConfig:
    return OmniPulseConfig.from_env(
        api_url=args.api_url,
        ingest_key=args.ingest_key,
        app_name=args.app_name,
        environment=args.environment,
        debug=True if args.verbose else None,
    )


def _parse_tags(pairs: list[str]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"tag must be KEY=VALUE, got {pair!r}")
        tags[key] = value
    return tags


async def _ping(config: OmniPulseConfig) -> bool:
    client = await init(config)
    try:
        return await client.test()
    finally:
        await close()


async def _send_log(config: OmniPulseConfig, level: LogLevel, message: str, tags: dict[str, str]) -> bool:
    client = await init(config)
    try:
        client.logger.log(level, message, tags or None)
        outcomes = await client.flush()
        return outcomes.get("logs", False)
    finally:
        await close()


def cmd_ping(args: argparse.Namespace) -> int:
    """Send a test log line and report whether the backend accepted it."""
    config = _config_from_args(args)
    logging_config.bind_app_context(config)
    ok = asyncio.run(_ping(config))
    if ok:
        logger.info("ping ok", api_url=config.api_url)
        return 0
    logger.error("ping failed", api_url=config.api_url)
    return 1


def cmd_send_log(args: argparse.Namespace) -> int:
    """Deliver a single log entry."""
    config = _config_from_args(args)
    logging_config.bind_app_context(config)
    level = LogLevel.parse(args.level)
    tags = _parse_tags(args.tag)
    ok = asyncio.run(_send_log(config, level, args.message, tags))
    if not ok:
        logger.error("log delivery failed", api_url=config.api_url)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="OmniPulse SDK CLI", prog="omnipulse")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging for the SDK")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--api-url", default=None, help="Ingestion API base URL (env: OMNIPULSE_API_URL)")
    parser.add_argument("--ingest-key", default=None, help="X-Ingest-Key value (env: OMNIPULSE_INGEST_KEY)")
    parser.add_argument("--app-name", default=None, help="Application name (env: OMNIPULSE_APP_NAME)")
    parser.add_argument("--environment", default=None, help="Deployment environment (env: OMNIPULSE_ENVIRONMENT)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("ping", help="Check connectivity with a test log line")

    p_log = subparsers.add_parser("send-log", help="Send one log entry")
    p_log.add_argument("message")
    p_log.add_argument(
        "--level",
        default="info",
        choices=[lvl.value for lvl in LogLevel],
        help="Log level (default: info)",
    )
    p_log.add_argument("--tag", action="append", default=[], metavar="KEY=VALUE", help="Attach a tag (repeatable)")
    return parser


_COMMANDS = {
    "ping": cmd_ping,
    "send-log": cmd_send_log,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging_config.configure(
        json_output=args.json_logs,
        level="INFO",
        sdk_level="DEBUG" if args.verbose else None,
    )

    try:
        code = _COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except (OmniPulseError, argparse.ArgumentTypeError) as e:
        print(f"error: {e}", file=sys.stderr)
        if args.verbose:
            logger.debug("command failed", exc_info=True)
        sys.exit(2)
    sys.exit(code)


if __name__ == "__main__":
    main()
