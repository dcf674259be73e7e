# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""OmniPulse exception hierarchy.

All SDK-specific errors inherit from OmniPulseError, allowing callers
to catch the base class for any SDK failure or specific subclasses
for targeted handling.

Transport failures (IngestError) never reach producers: the client
catches them per category at flush time.
"""

from __future__ import annotations


class OmniPulseError(Exception):
    """Base exception for all OmniPulse errors."""


class ConfigError(OmniPulseError, ValueError):
    """Invalid or incomplete SDK configuration."""


class InvalidEventError(OmniPulseError, ValueError):
    """Event constructed with a missing or malformed required field."""


class NotInitializedError(OmniPulseError, RuntimeError):
    """Client accessed before ``omnipulse.init()`` was awaited."""

    def __init__(self, message: str = "OmniPulse must be initialized first. Call omnipulse.init()") -> None:
        super().__init__(message)


class IngestError(OmniPulseError):
    """Ingestion API rejected a batch (non-2xx response)."""

    def __init__(self, message: str, *, endpoint: str = "", status_code: int = 0) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
