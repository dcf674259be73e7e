# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Screen tracking from navigation transitions.

The observer is a best-effort collaborator: before ``omnipulse.init()`` (or
after close) transitions still update bookkeeping but emit nothing.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .events import ScreenViewEvent, utcnow

if TYPE_CHECKING:
    from .client import OmniPulse


@dataclass(frozen=True, slots=True)
class ScreenTransition:
    """One navigation-change notification from the host router."""

    screen: str | None
    previous: str | None = None


def _resolve(client: OmniPulse | None) -> OmniPulse | None:
    if client is not None:
        return client
    from .client import current

    return current()


class ScreenObserver:
    """Emits a ``ScreenViewEvent`` whenever navigation lands on a named screen.

    ``previous_screen`` is the screen this observer last tracked. Until it has
    tracked one, the router-supplied previous route is reported instead, so the
    first event after attaching mid-navigation still names where the user came
    from. ``duration_ms`` is only set once a previous entry time exists.
    """

    def __init__(
        self,
        client: OmniPulse | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._clock = clock
        self._current_screen: str | None = None
        self._entered_at: float | None = None

    @property
    def current_screen(self) -> str | None:
        return self._current_screen

    def did_push(self, route: str | None, previous_route: str | None = None) -> None:
        self._track_screen_change(route, previous_route)

    def did_pop(self, route: str | None, previous_route: str | None = None) -> None:
        # popping reveals previous_route
        if previous_route is not None:
            self._track_screen_change(previous_route, route)

    def did_replace(self, new_route: str | None = None, old_route: str | None = None) -> None:
        self._track_screen_change(new_route, old_route)

    async def watch(self, transitions: AsyncIterable[ScreenTransition]) -> None:
        """Consume a navigation-change stream until it ends."""
        async for transition in transitions:
            self._track_screen_change(transition.screen, transition.previous)

    def _track_screen_change(self, new_screen: str | None, previous_screen: str | None) -> None:
        if not new_screen:
            return

        now = self._clock()
        duration_ms = int((now - self._entered_at) * 1000) if self._entered_at is not None else None

        client = _resolve(self._client)
        if client is not None:
            client.add_screen_view(
                ScreenViewEvent(
                    timestamp=utcnow(),
                    screen_name=new_screen,
                    previous_screen=self._current_screen if self._current_screen is not None else previous_screen,
                    duration_ms=max(duration_ms, 0) if duration_ms is not None else None,
                )
            )

        self._current_screen = new_screen
        self._entered_at = now

    def track_screen(self, screen_name: str) -> None:
        """Record a manual screen view; does not touch navigation bookkeeping."""
        client = _resolve(self._client)
        if client is not None:
            client.add_screen_view(ScreenViewEvent(timestamp=utcnow(), screen_name=screen_name))
