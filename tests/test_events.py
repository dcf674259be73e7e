# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for omnipulse.events — event records and wire representation."""

from __future__ import annotations

import dataclasses
import json
import math
from datetime import UTC, datetime

import pytest

from omnipulse.errors import InvalidEventError
from omnipulse.events import (
    ErrorEvent,
    LogEntry,
    LogLevel,
    PerformanceEvent,
    ScreenViewEvent,
    TraceEvent,
)

TS = datetime(2025, 6, 1, 12, 30, 0, tzinfo=UTC)
TS_END = datetime(2025, 6, 1, 12, 30, 1, tzinfo=UTC)


def _trace(**overrides) -> TraceEvent:
    fields = {
        "trace_id": "t" * 36,
        "span_id": "s" * 16,
        "name": "GET /users",
        "kind": "client",
        "start_time": TS,
        "end_time": TS_END,
        "duration_ms": 1000,
        "status_code": 200,
        "status": "ok",
    }
    fields.update(overrides)
    return TraceEvent(**fields)


# ── Optional fields are omitted, not null ────────────────────────


class TestAbsentOptionalFields:
    def test_log_entry_minimal(self):
        data = LogEntry(timestamp=TS, level=LogLevel.INFO, message="hello").to_json()
        assert data == {"timestamp": TS.isoformat(), "level": "info", "message": "hello"}

    def test_error_event_minimal(self):
        data = ErrorEvent(timestamp=TS, message="boom").to_json()
        assert set(data) == {"timestamp", "message"}

    def test_screen_view_minimal(self):
        data = ScreenViewEvent(timestamp=TS, screen_name="/home").to_json()
        assert set(data) == {"timestamp", "screen_name"}

    def test_trace_minimal(self):
        data = _trace().to_json()
        assert "parent_span_id" not in data
        assert "attributes" not in data
        assert None not in data.values()

    def test_performance_minimal(self):
        data = PerformanceEvent(timestamp=TS, metric_name="flutter.fps", value=60).to_json()
        assert set(data) == {"timestamp", "metric_name", "value"}

    def test_no_null_values_anywhere(self):
        events = [
            LogEntry(timestamp=TS, level=LogLevel.DEBUG, message=""),
            ErrorEvent(timestamp=TS, message="x"),
            ScreenViewEvent(timestamp=TS, screen_name="a"),
            _trace(),
            PerformanceEvent(timestamp=TS, metric_name="m", value=1.0),
        ]
        for event in events:
            assert "null" not in json.dumps(event.to_json())


# ── Full serialization ───────────────────────────────────────────


class TestFullSerialization:
    def test_log_entry_all_fields(self):
        entry = LogEntry(
            timestamp=TS,
            level=LogLevel.WARN,
            message="disk low",
            service_name="svc",
            tags={"free_mb": 12},
            trace_id="abc",
            span_id="def",
        )
        assert entry.to_json() == {
            "timestamp": "2025-06-01T12:30:00+00:00",
            "level": "warn",
            "message": "disk low",
            "service_name": "svc",
            "tags": {"free_mb": 12},
            "trace_id": "abc",
            "span_id": "def",
        }

    def test_error_event_all_fields(self):
        data = ErrorEvent(
            timestamp=TS,
            message="boom",
            stack_trace="Traceback ...",
            error_type="ValueError",
            context={"screen": "/cart"},
        ).to_json()
        assert data["stack_trace"] == "Traceback ..."
        assert data["error_type"] == "ValueError"
        assert data["context"] == {"screen": "/cart"}

    def test_screen_view_all_fields(self):
        data = ScreenViewEvent(timestamp=TS, screen_name="/b", previous_screen="/a", duration_ms=1500).to_json()
        assert data["previous_screen"] == "/a"
        assert data["duration_ms"] == 1500

    def test_trace_all_fields(self):
        data = _trace(parent_span_id="p" * 16, attributes={"http.method": "GET"}).to_json()
        assert data["parent_span_id"] == "p" * 16
        assert data["attributes"] == {"http.method": "GET"}
        assert data["start_time"] == TS.isoformat()
        assert data["end_time"] == TS_END.isoformat()
        assert data["duration_ms"] == 1000
        assert data["status_code"] == 200
        assert data["status"] == "ok"

    def test_performance_value_is_float(self):
        data = PerformanceEvent(timestamp=TS, metric_name="m", value=5, unit="ms", tags={"a": 1}).to_json()
        assert data["value"] == 5.0
        assert isinstance(data["value"], float)
        assert data["unit"] == "ms"
        assert data["tags"] == {"a": 1}

    def test_tags_are_copied(self):
        tags = {"k": "v"}
        data = LogEntry(timestamp=TS, level=LogLevel.INFO, message="m", tags=tags).to_json()
        data["tags"]["k"] = "changed"
        assert tags == {"k": "v"}


# ── Immutability and validation ──────────────────────────────────


class TestValidation:
    def test_frozen(self):
        entry = LogEntry(timestamp=TS, level=LogLevel.INFO, message="m")
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.message = "other"  # type: ignore[misc]

    def test_level_must_be_enum(self):
        with pytest.raises(InvalidEventError):
            LogEntry(timestamp=TS, level="info", message="m")  # type: ignore[arg-type]

    def test_timestamp_must_be_datetime(self):
        with pytest.raises(InvalidEventError):
            ErrorEvent(timestamp="2025-01-01", message="m")  # type: ignore[arg-type]

    def test_screen_name_required(self):
        with pytest.raises(InvalidEventError):
            ScreenViewEvent(timestamp=TS, screen_name="")

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidEventError):
            ScreenViewEvent(timestamp=TS, screen_name="a", duration_ms=-1)

    def test_trace_requires_ids(self):
        with pytest.raises(InvalidEventError):
            _trace(trace_id="")

    def test_trace_status_code_must_be_int(self):
        with pytest.raises(InvalidEventError):
            _trace(status_code="200")

    def test_metric_value_must_be_numeric(self):
        with pytest.raises(InvalidEventError):
            PerformanceEvent(timestamp=TS, metric_name="m", value="fast")  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [True, float("nan"), math.inf, -math.inf])
    def test_metric_value_rejects_bool_and_non_finite(self, value):
        with pytest.raises(InvalidEventError):
            PerformanceEvent(timestamp=TS, metric_name="m", value=value)

    def test_tags_must_be_mapping(self):
        with pytest.raises(InvalidEventError):
            PerformanceEvent(timestamp=TS, metric_name="m", value=1, tags=["a"])  # type: ignore[arg-type]

    def test_invalid_event_error_is_value_error(self):
        with pytest.raises(ValueError):
            ScreenViewEvent(timestamp=TS, screen_name="")


class TestLogLevelParse:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("info", LogLevel.INFO),
            ("DEBUG", LogLevel.DEBUG),
            ("Warning", LogLevel.WARN),
            ("warn", LogLevel.WARN),
            ("critical", LogLevel.FATAL),
            ("error", LogLevel.ERROR),
            (LogLevel.FATAL, LogLevel.FATAL),
        ],
    )
    def test_parse(self, raw, expected):
        assert LogLevel.parse(raw) is expected

    def test_unknown_level(self):
        with pytest.raises(InvalidEventError):
            LogLevel.parse("verbose")


# ── Property: key present iff the optional field was set ─────────

hypothesis = pytest.importorskip("hypothesis")
from hypothesis import given  # noqa: E402
from hypothesis import strategies as st  # noqa: E402

_optional_text = st.one_of(st.none(), st.text(min_size=1, max_size=20))


@given(service_name=_optional_text, trace_id=_optional_text, span_id=_optional_text)
def test_log_entry_optional_keys_follow_presence(service_name, trace_id, span_id):
    data = LogEntry(
        timestamp=TS,
        level=LogLevel.INFO,
        message="m",
        service_name=service_name,
        trace_id=trace_id,
        span_id=span_id,
    ).to_json()
    assert ("service_name" in data) == (service_name is not None)
    assert ("trace_id" in data) == (trace_id is not None)
    assert ("span_id" in data) == (span_id is not None)


@given(previous=_optional_text, duration=st.one_of(st.none(), st.integers(min_value=0, max_value=10**9)))
def test_screen_view_optional_keys_follow_presence(previous, duration):
    data = ScreenViewEvent(timestamp=TS, screen_name="/x", previous_screen=previous, duration_ms=duration).to_json()
    assert ("previous_screen" in data) == (previous is not None)
    assert ("duration_ms" in data) == (duration is not None)
