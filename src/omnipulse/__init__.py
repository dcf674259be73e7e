# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""OmniPulse: client-side telemetry SDK.

Collects logs, errors, screen views, HTTP trace spans and performance metrics,
buffers them in memory, and ships them in batches to the OmniPulse ingestion API.

Usage:
    import omnipulse

    client = await omnipulse.init(omnipulse.OmniPulseConfig(
        api_url="https://ingest.example.com",
        ingest_key="...",
        app_name="my-app",
    ))
    client.logger.info("started", {"build": "42"})
    ...
    await omnipulse.close()

Not yet initialized? ``get_client()`` raises NotInitializedError; the screen
observer, log handler and HTTP tracing silently do nothing.
"""

from __future__ import annotations

import contextlib

from .client import OmniPulse, close, current, get_client, init
from .config import OmniPulseConfig
from .error_handler import ErrorHandler
from .errors import ConfigError, IngestError, InvalidEventError, NotInitializedError, OmniPulseError
from .events import ErrorEvent, LogEntry, LogLevel, PerformanceEvent, ScreenViewEvent, TraceEvent
from .http_client import AsyncTracingTransport, TracingTransport, traced_client
from .logger import OmniPulseLogger, OmniPulseLogHandler
from .performance import LifecycleState, PerformanceMonitor
from .screen import ScreenObserver, ScreenTransition
from .transport import HttpxTransport, ListTransport, Transport

__all__ = [
    "AsyncTracingTransport",
    "ConfigError",
    "ErrorEvent",
    "ErrorHandler",
    "HttpxTransport",
    "IngestError",
    "InvalidEventError",
    "LifecycleState",
    "ListTransport",
    "LogEntry",
    "LogLevel",
    "NotInitializedError",
    "OmniPulse",
    "OmniPulseConfig",
    "OmniPulseError",
    "OmniPulseLogHandler",
    "OmniPulseLogger",
    "PerformanceEvent",
    "PerformanceMonitor",
    "ScreenObserver",
    "ScreenTransition",
    "ScreenViewEvent",
    "TraceEvent",
    "TracingTransport",
    "Transport",
    "close",
    "current",
    "get_client",
    "init",
]


def _reset_for_testing() -> None:
    """Reset module state for test isolation."""
    from . import client as _client

    _client._reset_for_testing()
    monitor = PerformanceMonitor.instance()
    if monitor is not None:
        with contextlib.suppress(Exception):
            monitor.dispose()
        PerformanceMonitor._instance = None
