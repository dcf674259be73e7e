# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import omnipulse  # noqa: F401
except ImportError:
    raise ImportError("omnipulse is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from omnipulse.config import OmniPulseConfig
from omnipulse.transport import ListTransport


@pytest.fixture(autouse=True)
def _reset_state():
    """Drop process-wide client/monitor handles before and after each test."""
    import omnipulse

    omnipulse._reset_for_testing()
    yield
    omnipulse._reset_for_testing()


@pytest.fixture
def config() -> OmniPulseConfig:
    return OmniPulseConfig(
        api_url="https://ingest.example.com",
        ingest_key="test-key",
        app_name="test-app",
        app_version="1.2.3",
        flush_interval_seconds=3600,
    )


@pytest.fixture
def transport() -> ListTransport:
    return ListTransport()
