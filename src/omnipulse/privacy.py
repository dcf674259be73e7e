# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Redaction utilities for recorded HTTP traces."""

from __future__ import annotations

from collections.abc import Iterable

REDACTED = "[REDACTED]"

# Header names whose values must never appear in trace attributes
DEFAULT_SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "x-api-key",
        "x-ingest-key",
        "cookie",
        "set-cookie",
    }
)


def normalize_header_names(names: Iterable[str]) -> frozenset[str]:
    return frozenset(n.strip().lower() for n in names)


def redact_headers(
    headers: Iterable[tuple[str, str]],
    sensitive: frozenset[str] = DEFAULT_SENSITIVE_HEADERS,
) -> dict[str, str]:
    """Copy header pairs, replacing sensitive values (case-insensitive names).

    Repeated headers are joined with ``", "`` as in an HTTP field-value list.

    Args:
        headers: ``(name, value)`` pairs, as sent on the wire.
        sensitive: Lower-cased header names to redact.

    Returns:
        New dict keyed by the header names as given.
    """
    result: dict[str, str] = {}
    for name, value in headers:
        if name.lower() in sensitive:
            result[name] = REDACTED
        elif name in result:
            result[name] = f"{result[name]}, {value}"
        else:
            result[name] = value
    return result


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]
