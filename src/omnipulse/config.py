# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""SDK configuration: immutable, set once at startup."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigError

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class OmniPulseConfig:
    """Immutable configuration for the OmniPulse client."""

    api_url: str
    ingest_key: str
    app_name: str
    app_version: str | None = None
    environment: str = "production"
    debug: bool = False
    batch_size: int = 50  # total items across all five buffers
    flush_interval_seconds: float = 10

    def __post_init__(self) -> None:
        for name in ("api_url", "ingest_key", "app_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"{name} is required")
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigError(f"api_url must be an http(s) URL, got {self.api_url!r}")
        if self.batch_size <= 0:
            raise ConfigError(f"batch_size must be > 0, got {self.batch_size}")
        if self.flush_interval_seconds <= 0:
            raise ConfigError(f"flush_interval_seconds must be > 0, got {self.flush_interval_seconds}")
        # frozen: bypass __setattr__ to normalize the base URL once
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))

    @classmethod
    def from_env(cls, **overrides: object) -> OmniPulseConfig:
        """Build a config from ``OMNIPULSE_*`` environment variables.

        Keyword overrides win over the environment; ``None`` overrides are ignored.
        """
        values: dict[str, object] = {
            "api_url": os.environ.get("OMNIPULSE_API_URL", "").strip(),
            "ingest_key": os.environ.get("OMNIPULSE_INGEST_KEY", "").strip(),
            "app_name": os.environ.get("OMNIPULSE_APP_NAME", "").strip(),
        }

        env_version = os.environ.get("OMNIPULSE_APP_VERSION", "").strip()
        if env_version:
            values["app_version"] = env_version

        env_environment = os.environ.get("OMNIPULSE_ENVIRONMENT", "").strip()
        if env_environment:
            values["environment"] = env_environment

        env_debug = os.environ.get("OMNIPULSE_DEBUG", "").strip().lower()
        if env_debug:
            values["debug"] = env_debug in _TRUTHY

        env_batch = os.environ.get("OMNIPULSE_BATCH_SIZE", "").strip()
        if env_batch:
            try:
                values["batch_size"] = int(env_batch)
            except ValueError:
                raise ConfigError(f"OMNIPULSE_BATCH_SIZE must be an integer, got {env_batch!r}") from None

        env_interval = os.environ.get("OMNIPULSE_FLUSH_INTERVAL", "").strip()
        if env_interval:
            try:
                values["flush_interval_seconds"] = float(env_interval)
            except ValueError:
                raise ConfigError(f"OMNIPULSE_FLUSH_INTERVAL must be a number, got {env_interval!r}") from None

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]

