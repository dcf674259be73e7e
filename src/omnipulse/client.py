# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Ingestion client: per-category buffers, periodic flush, batched HTTP delivery.

Producers append events from the event-loop thread or any worker thread.
Each buffer is drained by swapping it for an empty list under a lock, so an
event lands in exactly one flush generation. The five category sends run
concurrently and fail independently; a failed batch is logged and dropped
(no retry, no requeue).
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import json
import logging
import platform
import threading
import uuid
from dataclasses import dataclass
from types import TracebackType

from .config import OmniPulseConfig
from .error_handler import ErrorHandler
from .errors import IngestError, NotInitializedError
from .events import ErrorEvent, Event, LogEntry, PerformanceEvent, ScreenViewEvent, TraceEvent
from .logger import OmniPulseLogger
from .transport import SEND_TIMEOUT_S, HttpxTransport, Transport

logger = logging.getLogger(__name__)

# ── Version (read once at import) ────────────────────────────────
try:
    from importlib.metadata import version as _pkg_version

    SDK_VERSION = _pkg_version("omnipulse")
except Exception:
    SDK_VERSION = "unknown"

USER_AGENT = f"omnipulse-python-sdk/{SDK_VERSION}"


# ── Wire contract ────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Category:
    name: str
    path: str
    body_key: str


LOGS = Category("logs", "/api/ingest/app-logs", "logs")
ERRORS = Category("errors", "/api/ingest/app-errors", "errors")
SCREENS = Category("screens", "/api/ingest/app-screens", "screens")
TRACES = Category("traces", "/api/ingest/app-traces", "traces")
METRICS = Category("metrics", "/api/ingest/app-metrics", "metrics")

CATEGORIES: tuple[Category, ...] = (LOGS, ERRORS, SCREENS, TRACES, METRICS)


# ── Meta (internal counters) ─────────────────────────────────────


class IngestMeta:
    """Approximate delivery counters, in events.

    Best-effort diagnostics: increments are not synchronized.
    """

    __slots__ = ("buffered", "sent", "lost", "dropped")

    def __init__(self) -> None:
        self.buffered: int = 0
        self.sent: int = 0
        self.lost: int = 0  # batch send failed
        self.dropped: int = 0  # added after close()

    def snapshot(self) -> dict:
        return {"buffered": self.buffered, "sent": self.sent, "lost": self.lost, "dropped": self.dropped}


# ── Client ───────────────────────────────────────────────────────


class OmniPulse:
    """Buffers events per category and ships them to the ingestion API.

    ``add_*`` never raise and never block beyond a list append. Reaching
    ``config.batch_size`` buffered items (all categories combined) schedules a
    flush without waiting for the periodic tick.
    """

    def __init__(self, config: OmniPulseConfig, transport: Transport | None = None) -> None:
        self.config = config
        self.meta = IngestMeta()
        self._transport: Transport = transport if transport is not None else HttpxTransport()
        self._headers = {
            "Content-Type": "application/json",
            "X-Ingest-Key": config.ingest_key,
            "User-Agent": USER_AGENT,
        }
        self._lock = threading.Lock()
        self._buffers: dict[str, list[Event]] = {c.name: [] for c in CATEGORIES}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._flush_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Future | concurrent.futures.Future] = set()
        self._initialized = False
        self._closed = False

        self.logger = OmniPulseLogger(self)
        self.error_handler = ErrorHandler(self)

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Bind to the running loop and start the periodic flush task."""
        if self._initialized:
            return
        self._loop = asyncio.get_running_loop()
        self._flush_task = self._loop.create_task(self._periodic_flush_loop())
        self._initialized = True
        if self.config.debug:
            logger.debug("OmniPulse initialized with API: %s", self.config.api_url)

    @property
    def initialized(self) -> bool:
        return self._initialized and not self._closed

    async def _periodic_flush_loop(self) -> None:
        """Background task that flushes every flush_interval_seconds."""
        try:
            while True:
                await asyncio.sleep(self.config.flush_interval_seconds)
                await self.flush()
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        """Cancel the periodic tick, flush once more, release the transport."""
        global _instance
        if self._closed:
            return
        if self._flush_task is not None:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
            self._flush_task = None

        # from here on _append counts events as dropped
        with self._lock:
            self._closed = True

        pending = [f if isinstance(f, asyncio.Future) else asyncio.wrap_future(f) for f in list(self._inflight)]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self.flush()
        await self._transport.aclose()
        if _instance is self:
            _instance = None
        if self.config.debug:
            logger.debug("OmniPulse closed", extra={"meta": self.meta.snapshot()})

    async def __aenter__(self) -> OmniPulse:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Producers ────────────────────────────────────────────────

    def generate_id(self) -> str:
        return str(uuid.uuid4())

    def add_log(self, entry: LogEntry) -> None:
        self._append(LOGS, entry)

    def add_error(self, event: ErrorEvent) -> None:
        self._append(ERRORS, event)

    def add_screen_view(self, event: ScreenViewEvent) -> None:
        self._append(SCREENS, event)

    def add_trace(self, event: TraceEvent) -> None:
        self._append(TRACES, event)

    def add_performance(self, event: PerformanceEvent) -> None:
        self._append(METRICS, event)

    def _append(self, category: Category, event: Event) -> None:
        with self._lock:
            if self._closed:
                self.meta.dropped += 1
                return
            self._buffers[category.name].append(event)
            total = sum(len(b) for b in self._buffers.values())
        self.meta.buffered += 1
        if total >= self.config.batch_size:
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        """Start a flush on the client's loop; from a foreign thread, hand it over."""
        loop = self._loop
        if loop is None or loop.is_closed() or self._closed:
            return  # not started: events wait for the first flush
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        future: asyncio.Future | concurrent.futures.Future
        if running is loop:
            future = loop.create_task(self.flush())
        else:
            future = asyncio.run_coroutine_threadsafe(self.flush(), loop)
        self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)

    # ── Flush ────────────────────────────────────────────────────

    def pending(self) -> dict[str, int]:
        """Buffered item count per category."""
        with self._lock:
            return {name: len(buf) for name, buf in self._buffers.items()}

    def buffered_count(self) -> int:
        return sum(self.pending().values())

    def _drain(self, category: Category) -> list[Event]:
        with self._lock:
            snapshot = self._buffers[category.name]
            self._buffers[category.name] = []
        return snapshot

    async def flush(self) -> dict[str, bool]:
        """Drain every buffer and send each non-empty batch.

        Returns ``{category: delivered}`` for the categories that had data.
        Never raises for transport failures.
        """
        batches = [(c, batch) for c in CATEGORIES if (batch := self._drain(c))]
        if not batches:
            return {}
        outcomes = await asyncio.gather(*(self._send_batch(c, batch) for c, batch in batches))
        return {c.name: ok for (c, _), ok in zip(batches, outcomes, strict=True)}

    async def _send_batch(self, category: Category, events: list[Event]) -> bool:
        try:
            payload = {category.body_key: [e.to_json() for e in events]}
            await self._send(category.path, payload)
        except Exception as e:
            self.meta.lost += len(events)
            if self.config.debug:
                logger.warning("Failed to send %s (%d items): %r", category.name, len(events), e)
            else:
                logger.debug("Failed to send %s: %r", category.name, e)
            return False
        self.meta.sent += len(events)
        return True

    async def _send(self, path: str, payload: dict) -> None:
        url = f"{self.config.api_url}{path}"
        body = json.dumps(
            payload, ensure_ascii=False, allow_nan=False, separators=(",", ":"), default=str
        ).encode("utf-8")
        status = await asyncio.wait_for(
            self._transport.send(url, dict(self._headers), body),
            timeout=SEND_TIMEOUT_S,
        )
        if self.config.debug:
            logger.debug("Sent to %s, status: %s", path, status)
        if not 200 <= status < 300:
            raise IngestError(f"ingest rejected with HTTP {status}", endpoint=path, status_code=status)

    # ── Connectivity check ───────────────────────────────────────

    async def test(self) -> bool:
        """Send a test log line and report whether the flush delivered everything."""
        try:
            self.logger.info(
                "OmniPulse SDK test message",
                {
                    "sdk_version": SDK_VERSION,
                    "platform": platform.system().lower(),
                    "app_name": self.config.app_name,
                },
            )
            outcomes = await self.flush()
            return bool(outcomes) and all(outcomes.values())
        except Exception as e:
            if self.config.debug:
                logger.warning("Test failed: %r", e)
            return False


# ── Process-wide handle ──────────────────────────────────────────

_instance: OmniPulse | None = None


async def init(config: OmniPulseConfig, transport: Transport | None = None) -> OmniPulse:
    """Create and start the process-wide client.

    Idempotent: subsequent calls return the existing client unchanged.
    """
    global _instance
    if _instance is not None:
        return _instance
    client = OmniPulse(config, transport)
    _instance = client
    await client.start()
    return client


def get_client() -> OmniPulse:
    """Return the process-wide client or raise NotInitializedError."""
    if _instance is None:
        raise NotInitializedError()
    return _instance


def current() -> OmniPulse | None:
    """Return the process-wide client, or None before init / after close."""
    return _instance


async def close() -> None:
    if _instance is not None:
        await _instance.close()


def _reset_for_testing() -> None:
    """Drop the process-wide handle without flushing (test isolation)."""
    global _instance
    if _instance is not None and _instance._flush_task is not None:
        with contextlib.suppress(Exception):
            _instance._flush_task.cancel()
    _instance = None
