"""Tests for the Typer-based Streamhub CLI."""
from __future__ import annotations

import asyncio
import importlib
import json
from typing import Any

import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from backend.hub_api import create_app
from backend.hub_api.settings import HubSettings
from backend.hub_cli.app import app as cli_app

from .conftest import PROVIDER_MANIFEST, STREAM_MODULE, FakeUpstream

cli_app_module = importlib.import_module("backend.hub_cli.app")


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_client(
    settings: HubSettings, upstream: FakeUpstream, monkeypatch: pytest.MonkeyPatch
) -> TestClient:
    """Provide a TestClient and patch the CLI HTTP client factory."""

    test_client = TestClient(create_app(settings=settings, transport=upstream.transport()))

    def _factory(base_url: str, *, timeout: float = 60.0, transport: Any = None) -> TestClient:
        return test_client

    monkeypatch.setattr(cli_app_module, "create_client", _factory)
    return test_client


def test_cli_health_command_outputs_status(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["health"])

    assert result.exit_code == 0
    assert "\"status\": \"ok\"" in result.output


def test_cli_providers_lists_manifest(
    runner: CliRunner, cli_client: TestClient, upstream: FakeUpstream
) -> None:
    upstream.add(PROVIDER_MANIFEST, json=[{"value": "mod", "display_name": "ModFlix"}])

    result = runner.invoke(cli_app, ["providers"])

    assert result.exit_code == 0
    assert json.loads(result.output)["data"][0]["name"] == "ModFlix"


def test_cli_stream_prints_candidates(runner: CliRunner, cli_client: TestClient, upstream: FakeUpstream) -> None:
    upstream.module("mod", "stream", STREAM_MODULE)

    result = runner.invoke(cli_app, ["stream", "modflix", "https://site.test/movies/abc", "--type", "movie"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["source"] == "provider"
    assert payload["data"][0]["server"] == "Mirror"


def test_cli_stream_refresh_bypasses_module_cache(
    runner: CliRunner, cli_client: TestClient, upstream: FakeUpstream
) -> None:
    upstream.module("mod", "stream", STREAM_MODULE)
    stream_url = "https://mirror.test/dist/mod/stream.py"
    asyncio.run(cli_client.app.state.app_state.registry.resolve("mod"))
    assert upstream.calls(stream_url) == 1

    result = runner.invoke(cli_app, ["stream", "mod", "https://site.test/a", "--refresh"])

    assert result.exit_code == 0
    assert upstream.calls(stream_url) == 2


def test_cli_stream_reports_error_envelope(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["stream", "ghost", "https://site.test/a"])

    assert result.exit_code == 1
    assert "Error (404): No stream module for provider: ghost" in result.output
    assert "Check the provider identifier" in result.output


def test_cli_modules_shows_available_roles(
    runner: CliRunner, cli_client: TestClient, upstream: FakeUpstream
) -> None:
    upstream.module("mod", "stream", STREAM_MODULE)

    result = runner.invoke(cli_app, ["modules", "mod"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["modules"] == ["stream"]
    assert payload["moduleSizes"] == {"stream": len(STREAM_MODULE)}


def test_cli_clear_cache(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli_app, ["clear-cache", "modflix"])

    assert result.exit_code == 0
    assert json.loads(result.output)["message"] == "Cache cleared for provider: modflix"
