# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Log producers: OmniPulseLogger (explicit calls) and OmniPulseLogHandler (stdlib bridge)."""

from __future__ import annotations

import logging
import traceback
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from .events import LogEntry, LogLevel, utcnow

if TYPE_CHECKING:
    from .client import OmniPulse


class OmniPulseLogger:
    """Logger bound to one client; every call becomes a ``LogEntry``."""

    def __init__(self, client: OmniPulse) -> None:
        self._client = client

    def debug(self, message: str, tags: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.DEBUG, message, tags)

    def info(self, message: str, tags: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.INFO, message, tags)

    def warn(self, message: str, tags: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.WARN, message, tags)

    warning = warn

    def error(self, message: str, tags: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.ERROR, message, tags)

    def fatal(self, message: str, tags: Mapping[str, Any] | None = None) -> None:
        self.log(LogLevel.FATAL, message, tags)

    def log(
        self,
        level: LogLevel | str,
        message: str,
        tags: Mapping[str, Any] | None = None,
        *,
        trace_id: str | None = None,
        span_id: str | None = None,
    ) -> None:
        entry = LogEntry(
            timestamp=utcnow(),
            level=LogLevel.parse(level),
            message=message,
            service_name=self._client.config.app_name,
            tags=tags,
            trace_id=trace_id,
            span_id=span_id,
        )
        self._client.add_log(entry)


# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def level_from_record(levelno: int) -> LogLevel:
    if levelno >= logging.CRITICAL:
        return LogLevel.FATAL
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARN
    if levelno >= logging.INFO:
        return LogLevel.INFO
    return LogLevel.DEBUG


class OmniPulseLogHandler(logging.Handler):
    """Logging handler that forwards stdlib (and structlog-bridged) records.

    Example:
        ```python
        handler = OmniPulseLogHandler(level=logging.WARNING)
        logging.getLogger().addHandler(handler)
        ```

    Without an explicit client the process-wide client is used; records
    emitted before ``omnipulse.init()`` are dropped. Records from the SDK's
    own loggers are ignored so send failures cannot feed back into the buffers.
    """

    def __init__(self, client: OmniPulse | None = None, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._client = client

    def _resolve_client(self) -> OmniPulse | None:
        if self._client is not None:
            return self._client
        from .client import current

        return current()

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == "omnipulse" or record.name.startswith("omnipulse."):
            return
        client = self._resolve_client()
        if client is None:
            return
        try:
            tags: dict[str, Any] = {
                "logger": record.name,
                "module": record.module,
                "function": record.funcName or "",
                "line": record.lineno,
            }
            for key, value in record.__dict__.items():
                if key not in _STANDARD_LOGRECORD_ATTRS and isinstance(value, (str, int, float, bool)):
                    tags[key] = value

            if record.exc_info:
                exc_type, exc_value, exc_tb = record.exc_info
                if exc_type is not None:
                    tags["exc_type"] = exc_type.__name__
                if exc_value is not None:
                    tags["exc_message"] = str(exc_value)
                    tags["exc_traceback"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))

            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, UTC),
                level=level_from_record(record.levelno),
                message=record.getMessage(),
                service_name=client.config.app_name,
                tags=tags,
            )
            client.add_log(entry)
        except Exception:
            self.handleError(record)
