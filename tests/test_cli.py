# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for omnipulse.cli — argument parsing and command exit codes."""

from __future__ import annotations

import argparse
import json
import logging

import pytest
import structlog

from omnipulse import cli
from omnipulse import client as client_module
from omnipulse.transport import ListTransport

BASE_ARGS = ["--api-url", "https://ingest.example.com", "--ingest-key", "k", "--app-name", "cli-test"]


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def sink(monkeypatch):
    """Route CLI-created clients to an in-memory transport."""
    transport = ListTransport()

    async def fake_init(config, transport_=None):
        return await client_module.init(config, transport)

    monkeypatch.setattr(cli, "init", fake_init)
    return transport


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for name in (
        "OMNIPULSE_API_URL",
        "OMNIPULSE_INGEST_KEY",
        "OMNIPULSE_APP_NAME",
        "OMNIPULSE_ENVIRONMENT",
        "OMNIPULSE_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    return excinfo.value.code


class TestParser:
    def test_send_log_defaults(self):
        args = cli.build_parser().parse_args(["send-log", "hello"])
        assert args.command == "send-log"
        assert args.level == "info"
        assert args.tag == []

    def test_repeatable_tags(self):
        args = cli.build_parser().parse_args(["send-log", "m", "--tag", "a=1", "--tag", "b=x=y"])
        assert cli._parse_tags(args.tag) == {"a": "1", "b": "x=y"}

    def test_invalid_level_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["send-log", "m", "--level", "verbose"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    @pytest.mark.parametrize("pair", ["novalue", "=value"])
    def test_bad_tag(self, pair):
        with pytest.raises(argparse.ArgumentTypeError):
            cli._parse_tags([pair])


class TestCommands:
    def test_ping_ok(self, sink):
        assert _exit_code([*BASE_ARGS, "ping"]) == 0
        (request,) = sink.requests
        assert request.url == "https://ingest.example.com/api/ingest/app-logs"
        body = json.loads(request.body)
        assert body["logs"][0]["message"] == "OmniPulse SDK test message"
        assert body["logs"][0]["service_name"] == "cli-test"
        assert sink.closed

    def test_ping_rejected(self, monkeypatch):
        transport = ListTransport(default_status=500)

        async def fake_init(config, transport_=None):
            return await client_module.init(config, transport)

        monkeypatch.setattr(cli, "init", fake_init)
        assert _exit_code([*BASE_ARGS, "ping"]) == 1

    def test_send_log(self, sink):
        code = _exit_code([*BASE_ARGS, "send-log", "deploy finished", "--level", "warn", "--tag", "build=42"])
        assert code == 0
        entry = json.loads(sink.requests[0].body)["logs"][0]
        assert entry["level"] == "warn"
        assert entry["message"] == "deploy finished"
        assert entry["tags"] == {"build": "42"}

    def test_env_configuration(self, sink, monkeypatch):
        monkeypatch.setenv("OMNIPULSE_API_URL", "https://env.example.com/")
        monkeypatch.setenv("OMNIPULSE_INGEST_KEY", "env-key")
        monkeypatch.setenv("OMNIPULSE_APP_NAME", "env-app")
        assert _exit_code(["send-log", "from env"]) == 0
        request = sink.requests[0]
        assert request.url == "https://env.example.com/api/ingest/app-logs"
        assert request.headers["X-Ingest-Key"] == "env-key"

    def test_missing_config_exits_2(self, sink, capsys):
        assert _exit_code(["ping"]) == 2
        assert "error:" in capsys.readouterr().err

    def test_bad_tag_exits_2(self, sink):
        assert _exit_code([*BASE_ARGS, "send-log", "m", "--tag", "oops"]) == 2
