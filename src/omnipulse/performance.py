# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Frame-timing, jank and app-lifecycle metrics.

The host UI framework feeds frame ticks and lifecycle transitions, either by
calling ``on_frame`` / ``on_lifecycle`` directly or by handing async streams
to ``start()``. Per-frame work is a deque append plus counter updates; the
aggregate FPS / P95 / jank-rate metrics are computed on a separate 30 s
report loop, independent of the client's flush loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import time
from collections import deque
from collections.abc import AsyncIterable, Awaitable, Callable, Iterator, Mapping
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from .events import PerformanceEvent, utcnow

if TYPE_CHECKING:
    from .client import OmniPulse

logger = logging.getLogger(__name__)

T = TypeVar("T")

JANK_THRESHOLD_MS = 16  # >16ms = missed 60fps frame
SEVERE_JANK_THRESHOLD_MS = 100
FRAME_WINDOW_SIZE = 100
REPORT_INTERVAL_S = 30.0
DEFAULT_NAMESPACE = "flutter"


class LifecycleState(str, Enum):
    PAUSED = "paused"
    RESUMED = "resumed"
    INACTIVE = "inactive"
    DETACHED = "detached"
    HIDDEN = "hidden"


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def percentile_index(n: int, fraction: float = 0.95) -> int:
    """Index into an ascending-sorted sample of size *n* (nearest-rank, floor)."""
    return min(math.floor(n * fraction), n - 1)


class PerformanceMonitor:
    """Turns frame ticks and lifecycle transitions into performance events."""

    _instance: ClassVar[PerformanceMonitor | None] = None

    def __init__(
        self,
        client: OmniPulse,
        *,
        namespace: str = DEFAULT_NAMESPACE,
        report_interval_s: float = REPORT_INTERVAL_S,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self._client = client
        self._namespace = namespace
        self._report_interval_s = report_interval_s
        self._clock = clock

        self._frame_times: deque[int] = deque(maxlen=FRAME_WINDOW_SIZE)
        self._last_frame_time: float | None = None
        self._paused_at: float | None = None

        self._jank_frames = 0
        self._severe_jank_frames = 0
        self._total_frames = 0

        self._tasks: list[asyncio.Task] = []

    # ── Process-wide handle ──────────────────────────────────────

    @classmethod
    def init(
        cls,
        client: OmniPulse,
        *,
        frames: AsyncIterable[float] | None = None,
        lifecycle: AsyncIterable[LifecycleState | str] | None = None,
        **kwargs: Any,
    ) -> PerformanceMonitor:
        """Create and start the process-wide monitor (idempotent).

        Must be called from a running event loop.
        """
        if cls._instance is not None:
            return cls._instance
        monitor = cls(client, **kwargs)
        monitor.start(frames=frames, lifecycle=lifecycle)
        cls._instance = monitor
        return monitor

    @classmethod
    def instance(cls) -> PerformanceMonitor | None:
        return cls._instance

    def start(
        self,
        *,
        frames: AsyncIterable[float] | None = None,
        lifecycle: AsyncIterable[LifecycleState | str] | None = None,
    ) -> None:
        """Start the report loop and subscribe to the given host streams."""
        loop = asyncio.get_running_loop()
        self._tasks.append(loop.create_task(self._report_loop()))
        if frames is not None:
            self._tasks.append(loop.create_task(self._consume_frames(frames)))
        if lifecycle is not None:
            self._tasks.append(loop.create_task(self._consume_lifecycle(lifecycle)))

    def dispose(self) -> None:
        """Stop monitoring. Buffered window data is discarded, not reported."""
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        if PerformanceMonitor._instance is self:
            PerformanceMonitor._instance = None

    async def _report_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._report_interval_s)
                self.report_metrics()
        except asyncio.CancelledError:
            pass

    async def _consume_frames(self, frames: AsyncIterable[float]) -> None:
        async for timestamp_ms in frames:
            self.on_frame(timestamp_ms)

    async def _consume_lifecycle(self, states: AsyncIterable[LifecycleState | str]) -> None:
        async for state in states:
            self.on_lifecycle(state)

    # ── Frames ───────────────────────────────────────────────────

    @property
    def frame_times(self) -> tuple[int, ...]:
        return tuple(self._frame_times)

    @property
    def counters(self) -> dict[str, int]:
        return {
            "jank_frames": self._jank_frames,
            "severe_jank_frames": self._severe_jank_frames,
            "total_frames": self._total_frames,
        }

    def on_frame(self, timestamp_ms: float | None = None) -> None:
        """Record one frame tick. The first tick only sets the baseline."""
        now = self._clock() if timestamp_ms is None else timestamp_ms

        if self._last_frame_time is not None:
            delta = int(now - self._last_frame_time)
            self._frame_times.append(delta)
            self._total_frames += 1

            if delta > JANK_THRESHOLD_MS:
                self._jank_frames += 1
                if delta > SEVERE_JANK_THRESHOLD_MS:
                    self._severe_jank_frames += 1
                    self._report_jank(delta)

        self._last_frame_time = now

    def _report_jank(self, frame_ms: int) -> None:
        self.record_metric(
            f"{self._namespace}.jank",
            frame_ms,
            unit="ms",
            tags={
                "severity": "severe",
                "threshold_exceeded_by": frame_ms - SEVERE_JANK_THRESHOLD_MS,
            },
        )

    def report_metrics(self) -> None:
        """Emit FPS, P95 frame time and jank rate for the window, then reset it."""
        if not self._frame_times:
            return

        timings = list(self._frame_times)
        avg = sum(timings) / len(timings)
        fps = 1000 / avg if avg > 0 else 60.0

        ordered = sorted(timings)
        p95 = ordered[percentile_index(len(ordered))]

        jank_rate = (self._jank_frames / self._total_frames) * 100 if self._total_frames > 0 else 0.0

        self.record_metric(f"{self._namespace}.fps", fps, unit="fps")
        self.record_metric(f"{self._namespace}.frame_time_p95", p95, unit="ms")
        self.record_metric(
            f"{self._namespace}.jank_rate",
            jank_rate,
            unit="percent",
            tags=self.counters,
        )

        self._jank_frames = 0
        self._severe_jank_frames = 0
        self._total_frames = 0
        self._frame_times.clear()

    # ── Lifecycle ────────────────────────────────────────────────

    def on_lifecycle(self, state: LifecycleState | str, timestamp_ms: float | None = None) -> None:
        state = LifecycleState(state)
        now = self._clock() if timestamp_ms is None else timestamp_ms

        if state is LifecycleState.PAUSED:
            self._paused_at = now
        elif state is LifecycleState.RESUMED and self._paused_at is not None:
            self.record_metric(
                f"{self._namespace}.background_duration",
                max(now - self._paused_at, 0.0),
                unit="ms",
            )
            self._paused_at = None

        self.record_metric(f"{self._namespace}.lifecycle", 1, tags={"state": state.value})

    # ── Custom metrics & timing ──────────────────────────────────

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str | None = None,
        tags: Mapping[str, Any] | None = None,
    ) -> None:
        self._client.add_performance(
            PerformanceEvent(timestamp=utcnow(), metric_name=name, value=value, unit=unit, tags=tags)
        )

    def _record_operation(self, operation_name: str, started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        self.record_metric(f"{self._namespace}.operation.{operation_name}", round(elapsed_ms, 3), unit="ms")

    def time_sync(self, operation_name: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run *fn* and record its wall-clock duration, even when it raises."""
        started = time.perf_counter()
        try:
            return fn(*args, **kwargs)
        finally:
            self._record_operation(operation_name, started)

    async def time_async(
        self,
        operation_name: str,
        operation: Callable[[], Awaitable[T]] | Awaitable[T],
    ) -> T:
        """Await *operation* (an awaitable or a zero-arg coroutine function) and record its duration."""
        started = time.perf_counter()
        try:
            awaitable = operation() if callable(operation) else operation
            return await awaitable
        finally:
            self._record_operation(operation_name, started)

    @contextlib.contextmanager
    def timed(self, operation_name: str) -> Iterator[None]:
        """Context-manager form of ``time_sync`` (usable around awaits too)."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self._record_operation(operation_name, started)

    def report_app_start_time(self, duration: timedelta | float) -> None:
        """Record app start time; a float is taken as seconds."""
        seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
        self.record_metric(f"{self._namespace}.app_start_time", round(seconds * 1000, 3), unit="ms")
