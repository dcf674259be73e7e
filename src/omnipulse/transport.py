# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Ingestion transports: HttpxTransport (network), ListTransport (in-memory)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

SEND_TIMEOUT_S = 5.0


class Transport(Protocol):
    """Transport protocol for ingestion batches.

    ``send`` returns the HTTP status code or raises on network failure/timeout.
    """

    async def send(self, url: str, headers: dict[str, str], body: bytes) -> int: ...

    async def aclose(self) -> None: ...


class HttpxTransport:
    """POST batches with a shared ``httpx.AsyncClient`` (fixed 5s timeout, no retry)."""

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: float = SEND_TIMEOUT_S) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._timeout = timeout

    async def send(self, url: str, headers: dict[str, str], body: bytes) -> int:
        response = await self._client.post(url, headers=headers, content=body, timeout=self._timeout)
        return response.status_code

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


@dataclass(frozen=True, slots=True)
class SentRequest:
    url: str
    headers: dict[str, str]
    body: bytes


class ListTransport:
    """In-memory transport for testing. Captures every request.

    ``statuses`` maps a URL path suffix to the status code to answer with;
    paths listed in ``fail_paths`` raise ``httpx.ConnectError`` instead.
    """

    def __init__(
        self,
        *,
        statuses: dict[str, int] | None = None,
        fail_paths: set[str] | frozenset[str] = frozenset(),
        default_status: int = 202,
    ) -> None:
        self.requests: list[SentRequest] = []
        self.closed = False
        self._statuses = dict(statuses or {})
        self._fail_paths = frozenset(fail_paths)
        self._default_status = default_status

    async def send(self, url: str, headers: dict[str, str], body: bytes) -> int:
        for path in self._fail_paths:
            if url.endswith(path):
                raise httpx.ConnectError(f"connection refused: {url}")
        self.requests.append(SentRequest(url=url, headers=dict(headers), body=body))
        for path, status in self._statuses.items():
            if url.endswith(path):
                return status
        return self._default_status

    async def aclose(self) -> None:
        self.closed = True

    def requests_to(self, path: str) -> list[SentRequest]:
        return [r for r in self.requests if r.url.endswith(path)]
