# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Event records and their canonical wire representation.

Five immutable event kinds feed the ingestion client. ``to_json()`` returns a
JSON-compatible dict; optional fields left as ``None`` are omitted entirely,
because the ingestion API distinguishes an absent key from an explicit null.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .errors import InvalidEventError


def utcnow() -> datetime:
    return datetime.now(UTC)


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @classmethod
    def parse(cls, value: str | LogLevel) -> LogLevel:
        """Parse a level name case-insensitively (stdlib aliases accepted)."""
        if isinstance(value, LogLevel):
            return value
        name = str(value).strip().lower()
        name = _LEVEL_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise InvalidEventError(f"unknown log level: {value!r}") from None


_LEVEL_ALIASES = {"warning": "warn", "critical": "fatal"}


# ── Validation helpers ───────────────────────────────────────────


def _require_text(kind: str, name: str, value: object) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidEventError(f"{kind}.{name} must be a non-empty string, got {value!r}")


def _require_datetime(kind: str, name: str, value: object) -> None:
    if not isinstance(value, datetime):
        raise InvalidEventError(f"{kind}.{name} must be a datetime, got {type(value).__name__}")


def _require_mapping(kind: str, name: str, value: object) -> None:
    if value is not None and not isinstance(value, Mapping):
        raise InvalidEventError(f"{kind}.{name} must be a mapping, got {type(value).__name__}")


def _require_int(kind: str, name: str, value: object, *, optional: bool = False) -> None:
    if optional and value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidEventError(f"{kind}.{name} must be a non-negative int, got {value!r}")


def _put_optional(data: dict[str, Any], key: str, value: object) -> None:
    if value is not None:
        data[key] = dict(value) if isinstance(value, Mapping) else value


# ── Event kinds ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: datetime
    level: LogLevel
    message: str
    service_name: str | None = None
    tags: Mapping[str, Any] | None = None
    trace_id: str | None = None
    span_id: str | None = None

    def __post_init__(self) -> None:
        _require_datetime("LogEntry", "timestamp", self.timestamp)
        if not isinstance(self.level, LogLevel):
            raise InvalidEventError(f"LogEntry.level must be a LogLevel, got {self.level!r}")
        if not isinstance(self.message, str):
            raise InvalidEventError(f"LogEntry.message must be a string, got {type(self.message).__name__}")
        _require_mapping("LogEntry", "tags", self.tags)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
        }
        _put_optional(data, "service_name", self.service_name)
        _put_optional(data, "tags", self.tags)
        _put_optional(data, "trace_id", self.trace_id)
        _put_optional(data, "span_id", self.span_id)
        return data


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    timestamp: datetime
    message: str
    stack_trace: str | None = None
    error_type: str | None = None
    context: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        _require_datetime("ErrorEvent", "timestamp", self.timestamp)
        if not isinstance(self.message, str):
            raise InvalidEventError(f"ErrorEvent.message must be a string, got {type(self.message).__name__}")
        _require_mapping("ErrorEvent", "context", self.context)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
        }
        _put_optional(data, "stack_trace", self.stack_trace)
        _put_optional(data, "error_type", self.error_type)
        _put_optional(data, "context", self.context)
        return data


@dataclass(frozen=True, slots=True)
class ScreenViewEvent:
    timestamp: datetime
    screen_name: str
    previous_screen: str | None = None
    duration_ms: int | None = None

    def __post_init__(self) -> None:
        _require_datetime("ScreenViewEvent", "timestamp", self.timestamp)
        _require_text("ScreenViewEvent", "screen_name", self.screen_name)
        _require_int("ScreenViewEvent", "duration_ms", self.duration_ms, optional=True)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "screen_name": self.screen_name,
        }
        _put_optional(data, "previous_screen", self.previous_screen)
        _put_optional(data, "duration_ms", self.duration_ms)
        return data


@dataclass(frozen=True, slots=True)
class TraceEvent:
    """A single span, usually one HTTP request/response cycle."""

    trace_id: str
    span_id: str
    name: str
    kind: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    status_code: int
    status: str
    parent_span_id: str | None = None
    attributes: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        for name in ("trace_id", "span_id", "name", "kind", "status"):
            _require_text("TraceEvent", name, getattr(self, name))
        _require_datetime("TraceEvent", "start_time", self.start_time)
        _require_datetime("TraceEvent", "end_time", self.end_time)
        _require_int("TraceEvent", "duration_ms", self.duration_ms)
        _require_int("TraceEvent", "status_code", self.status_code)
        _require_mapping("TraceEvent", "attributes", self.attributes)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
        }
        _put_optional(data, "parent_span_id", self.parent_span_id)
        data.update(
            {
                "name": self.name,
                "kind": self.kind,
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat(),
                "duration_ms": self.duration_ms,
                "status_code": self.status_code,
                "status": self.status,
            }
        )
        _put_optional(data, "attributes", self.attributes)
        return data


@dataclass(frozen=True, slots=True)
class PerformanceEvent:
    timestamp: datetime
    metric_name: str
    value: float
    unit: str | None = None
    tags: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        _require_datetime("PerformanceEvent", "timestamp", self.timestamp)
        _require_text("PerformanceEvent", "metric_name", self.metric_name)
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)) or not math.isfinite(self.value):
            raise InvalidEventError(f"PerformanceEvent.value must be a finite number, got {self.value!r}")
        # frozen: normalize ints so the wire value is always a float
        object.__setattr__(self, "value", float(self.value))
        _require_mapping("PerformanceEvent", "tags", self.tags)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "metric_name": self.metric_name,
            "value": self.value,
        }
        _put_optional(data, "unit", self.unit)
        _put_optional(data, "tags", self.tags)
        return data


Event = LogEntry | ErrorEvent | ScreenViewEvent | TraceEvent | PerformanceEvent
