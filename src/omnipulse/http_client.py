# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""httpx transports that trace every request as a client span.

Usage:
    from omnipulse.http_client import traced_client

    async with traced_client(base_url="https://api.example.com") as http:
        await http.get("/data")

Each request gets fresh trace/span ids (propagated as headers) and produces
one ``TraceEvent`` once the exchange completes or fails. Recording is a side
channel: the original exception is always re-raised, and a failure while
recording never reaches the caller.
"""

from __future__ import annotations

import logging
import time
import traceback
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from .events import TraceEvent, utcnow
from .privacy import DEFAULT_SENSITIVE_HEADERS, normalize_header_names, redact_headers, truncate

if TYPE_CHECKING:
    from .client import OmniPulse

logger = logging.getLogger(__name__)

TRACE_ID_HEADER = "X-OmniPulse-Trace-ID"
SPAN_ID_HEADER = "X-OmniPulse-Span-ID"
SPAN_ID_LENGTH = 16
MAX_STACK_CHARS = 2000
DEFAULT_MAX_BODY_LOG_SIZE = 10_000


def classify_status(status_code: int | None, error: BaseException | None) -> str:
    if error is not None:
        return "error"
    if status_code is None:
        return "error"
    if 200 <= status_code < 400:
        return "ok"
    if status_code >= 400:
        return "error"
    return "ok"


@dataclass(slots=True)
class _Span:
    omnipulse: OmniPulse | None
    trace_id: str
    span_id: str
    start_time: datetime
    started: float


class _TraceRecorder:
    """Span bookkeeping shared by the sync and async transports."""

    def __init__(
        self,
        omnipulse: OmniPulse | None,
        sensitive_headers: Iterable[str],
        log_request_body: bool,
        log_response_body: bool,
        max_body_log_size: int,
    ) -> None:
        self._omnipulse = omnipulse
        self.sensitive_headers = normalize_header_names(sensitive_headers)
        self.log_request_body = log_request_body
        self.log_response_body = log_response_body
        self.max_body_log_size = max_body_log_size

    def begin(self, request: httpx.Request) -> _Span:
        if self._omnipulse is not None:
            omnipulse = self._omnipulse
        else:
            from .client import current

            omnipulse = current()
        new_id = omnipulse.generate_id if omnipulse is not None else lambda: str(uuid.uuid4())
        span = _Span(
            omnipulse=omnipulse,
            trace_id=new_id(),
            span_id=new_id()[:SPAN_ID_LENGTH],
            start_time=utcnow(),
            started=time.perf_counter(),
        )
        request.headers[TRACE_ID_HEADER] = span.trace_id
        request.headers[SPAN_ID_HEADER] = span.span_id
        return span

    def finish(
        self,
        span: _Span,
        request: httpx.Request,
        response: httpx.Response | None,
        error: BaseException | None,
    ) -> None:
        duration_ms = int((time.perf_counter() - span.started) * 1000)
        end_time = utcnow()
        if span.omnipulse is None:
            return  # no client: propagate ids only
        try:
            trace = TraceEvent(
                trace_id=span.trace_id,
                span_id=span.span_id,
                name=f"{request.method} {request.url.path or '/'}",
                kind="client",
                start_time=span.start_time,
                end_time=end_time,
                duration_ms=duration_ms,
                status_code=response.status_code if response is not None else 0,
                status=classify_status(response.status_code if response is not None else None, error),
                attributes=self.attributes(request, response, error),
            )
            span.omnipulse.add_trace(trace)
        except Exception:
            if span.omnipulse.config.debug:
                logger.warning("Failed to record HTTP trace", exc_info=True)
            else:
                logger.debug("Failed to record HTTP trace", exc_info=True)

    def attributes(
        self,
        request: httpx.Request,
        response: httpx.Response | None,
        error: BaseException | None,
    ) -> dict[str, Any]:
        attrs: dict[str, Any] = {
            "http.method": request.method,
            "http.url": str(request.url),
            "http.host": request.url.host,
            "http.path": request.url.path,
            "http.scheme": request.url.scheme,
            "span.kind": "client",
            "http.request_headers": redact_headers(_header_items(request.headers), self.sensitive_headers),
        }
        if self.log_request_body:
            body = _request_body(request)
            if body is not None:
                attrs["http.request_body"] = truncate(body, self.max_body_log_size)

        if response is not None:
            attrs["http.status_code"] = response.status_code
            content_length = response.headers.get("content-length")
            if content_length is not None and content_length.isdigit():
                attrs["http.response_content_length"] = int(content_length)
            attrs["http.response_headers"] = redact_headers(_header_items(response.headers), self.sensitive_headers)
            if self.log_response_body:
                body = _response_body(response)
                if body is not None:
                    attrs["http.response_body"] = truncate(body, self.max_body_log_size)

        if error is not None:
            attrs["error"] = True
            attrs["error.type"] = type(error).__name__
            attrs["error.message"] = str(error)
            if error.__traceback__ is not None:
                stack = "".join(traceback.format_tb(error.__traceback__))
                attrs["error.stack"] = truncate(stack, MAX_STACK_CHARS)
        return attrs


def _header_items(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Header pairs with their original name casing."""
    return [(k.decode(headers.encoding), v.decode(headers.encoding)) for k, v in headers.raw]


def _request_body(request: httpx.Request) -> str | None:
    try:
        content = request.content
    except httpx.RequestNotRead:
        return None  # streaming upload
    return content.decode("utf-8", errors="replace") if content else None


def _response_body(response: httpx.Response) -> str | None:
    try:
        content = response.content
    except httpx.ResponseNotRead:
        return None
    return content.decode("utf-8", errors="replace") if content else None


class AsyncTracingTransport(httpx.AsyncBaseTransport):
    """Wraps an async httpx transport; records one span per request."""

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport | None = None,
        *,
        omnipulse: OmniPulse | None = None,
        sensitive_headers: Iterable[str] = DEFAULT_SENSITIVE_HEADERS,
        log_request_body: bool = False,
        log_response_body: bool = False,
        max_body_log_size: int = DEFAULT_MAX_BODY_LOG_SIZE,
    ) -> None:
        self._inner = inner if inner is not None else httpx.AsyncHTTPTransport()
        self._recorder = _TraceRecorder(
            omnipulse, sensitive_headers, log_request_body, log_response_body, max_body_log_size
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        span = self._recorder.begin(request)
        response: httpx.Response | None = None
        error: BaseException | None = None
        try:
            response = await self._inner.handle_async_request(request)
            if self._recorder.log_response_body:
                await response.aread()
            return response
        except Exception as e:
            error = e
            raise
        finally:
            self._recorder.finish(span, request, response, error)

    async def aclose(self) -> None:
        await self._inner.aclose()


class TracingTransport(httpx.BaseTransport):
    """Sync counterpart of ``AsyncTracingTransport``."""

    def __init__(
        self,
        inner: httpx.BaseTransport | None = None,
        *,
        omnipulse: OmniPulse | None = None,
        sensitive_headers: Iterable[str] = DEFAULT_SENSITIVE_HEADERS,
        log_request_body: bool = False,
        log_response_body: bool = False,
        max_body_log_size: int = DEFAULT_MAX_BODY_LOG_SIZE,
    ) -> None:
        self._inner = inner if inner is not None else httpx.HTTPTransport()
        self._recorder = _TraceRecorder(
            omnipulse, sensitive_headers, log_request_body, log_response_body, max_body_log_size
        )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        span = self._recorder.begin(request)
        response: httpx.Response | None = None
        error: BaseException | None = None
        try:
            response = self._inner.handle_request(request)
            if self._recorder.log_response_body:
                response.read()
            return response
        except Exception as e:
            error = e
            raise
        finally:
            self._recorder.finish(span, request, response, error)

    def close(self) -> None:
        self._inner.close()


def traced_client(
    *,
    omnipulse: OmniPulse | None = None,
    sensitive_headers: Iterable[str] = DEFAULT_SENSITIVE_HEADERS,
    log_request_body: bool = False,
    log_response_body: bool = False,
    max_body_log_size: int = DEFAULT_MAX_BODY_LOG_SIZE,
    transport: httpx.AsyncBaseTransport | None = None,
    **client_kwargs: Any,
) -> httpx.AsyncClient:
    """Build an ``httpx.AsyncClient`` whose requests are traced."""
    tracing = AsyncTracingTransport(
        transport,
        omnipulse=omnipulse,
        sensitive_headers=sensitive_headers,
        log_request_body=log_request_body,
        log_response_body=log_response_body,
        max_body_log_size=max_body_log_size,
    )
    return httpx.AsyncClient(transport=tracing, **client_kwargs)
