# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for omnipulse.screen — navigation transitions to screen views."""

from __future__ import annotations

import pytest

from omnipulse.client import OmniPulse, init
from omnipulse.screen import ScreenObserver, ScreenTransition


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def _views(client: OmniPulse):
    return [e.to_json() for e in client._buffers["screens"]]


class TestPushPopReplace:
    def test_first_push_has_no_duration(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)

        observer.did_push("/home")

        (view,) = _views(client)
        assert view["screen_name"] == "/home"
        assert "duration_ms" not in view
        assert "previous_screen" not in view
        assert observer.current_screen == "/home"

    def test_duration_on_previous_screen(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)

        observer.did_push("/home")
        clock.advance(2.5)
        observer.did_push("/product", "/home")

        view = _views(client)[1]
        assert view["screen_name"] == "/product"
        assert view["previous_screen"] == "/home"
        assert view["duration_ms"] == 2500

    def test_pop_reveals_previous_route(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)

        observer.did_push("/home")
        clock.advance(1)
        observer.did_push("/cart", "/home")
        clock.advance(0.25)
        observer.did_pop("/cart", "/home")

        view = _views(client)[-1]
        assert view["screen_name"] == "/home"
        assert view["previous_screen"] == "/cart"
        assert view["duration_ms"] == 250
        assert observer.current_screen == "/home"

    def test_pop_without_previous_route_ignored(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)
        observer.did_push("/home")
        observer.did_pop("/home", None)
        assert len(_views(client)) == 1

    def test_replace(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)
        observer.did_push("/login")
        clock.advance(3)
        observer.did_replace(new_route="/dashboard", old_route="/login")

        view = _views(client)[-1]
        assert view["screen_name"] == "/dashboard"
        assert view["previous_screen"] == "/login"
        assert view["duration_ms"] == 3000

    def test_unnamed_routes_ignored(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)
        observer.did_push(None)
        observer.did_push("")
        observer.did_replace(new_route=None, old_route="/a")
        assert _views(client) == []
        assert observer.current_screen is None

    def test_router_previous_used_before_first_tracked_screen(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)
        observer.did_push("/details", "/list")
        assert _views(client)[0]["previous_screen"] == "/list"


class TestWithoutClient:
    def test_no_client_is_noop_but_tracks_state(self, clock):
        observer = ScreenObserver(clock=clock)
        observer.did_push("/home")
        assert observer.current_screen == "/home"

    @pytest.mark.asyncio
    async def test_late_init_picks_up_process_client(self, config, transport, clock):
        observer = ScreenObserver(clock=clock)
        observer.did_push("/splash")
        clock.advance(1.5)

        client = await init(config, transport)
        observer.did_push("/home", "/splash")

        (view,) = _views(client)
        assert view["screen_name"] == "/home"
        assert view["previous_screen"] == "/splash"
        assert view["duration_ms"] == 1500
        await client.close()


class TestManualAndStream:
    def test_track_screen(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)
        observer.track_screen("settings-dialog")

        (view,) = _views(client)
        assert view == {"timestamp": view["timestamp"], "screen_name": "settings-dialog"}
        assert observer.current_screen is None

    @pytest.mark.asyncio
    async def test_watch_stream(self, config, transport, clock):
        client = OmniPulse(config, transport)
        observer = ScreenObserver(client, clock=clock)

        async def transitions():
            yield ScreenTransition("/home")
            clock.advance(1)
            yield ScreenTransition("/search", "/home")
            yield ScreenTransition(None)

        await observer.watch(transitions())

        assert [v["screen_name"] for v in _views(client)] == ["/home", "/search"]
        assert observer.current_screen == "/search"
