# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for applications embedding the SDK.

The SDK itself only logs through ``logging.getLogger("omnipulse.*")``; it never
configures handlers on import. Applications (and the CLI) call ``configure()``
once at startup.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from .config import OmniPulseConfig

SDK_LOGGER = "omnipulse"


def configure(*, json_output: bool = False, level: str = "INFO", sdk_level: str | None = None) -> None:
    """Route SDK and application logs through one structlog renderer on stderr.

    The host keeps a quiet root level while ``sdk_level`` opens up the
    ``omnipulse.*`` loggers alone: batch sends and swallowed delivery failures
    are logged there at DEBUG, without enabling every other library's debug
    records.

    Args:
        json_output: True for JSON lines, False for human-readable console output.
        level: Root logger level (default INFO).
        sdk_level: Level for the ``omnipulse`` logger only, e.g. "DEBUG" to see
            every batch send. Defaults to inheriting the root level.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(level))

    sdk_logger = logging.getLogger(SDK_LOGGER)
    sdk_logger.setLevel(_level(sdk_level) if sdk_level else logging.NOTSET)


def bind_app_context(config: OmniPulseConfig) -> None:
    """Attach app identity to every subsequent log line (structlog contextvars)."""
    context = {"app_name": config.app_name, "environment": config.environment}
    if config.app_version:
        context["app_version"] = config.app_version
    structlog.contextvars.bind_contextvars(**context)


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)
