"""CLI tests for the ``credhub`` Typer application.

Every command is driven through :class:`typer.testing.CliRunner` against a
real :class:`~credhub_client.client.CredhubClient` whose transport is
backed by ``httpx.MockTransport``; only :func:`new_client` is patched.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from credhub_client import __version__
from credhub_client.app import app
from credhub_client.client import CredhubClient
from credhub_client.models import ClientOptions

BASE_URL = "https://credhub.example:8844"

runner = CliRunner()


class FakeApi:
    """Answers every request with a canned status and JSON body."""

    def __init__(self) -> None:
        self.status = 200
        self.body: Any = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """The root callback reconfigures logging with force=True."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def built_with(isolated_config: Path, static_transport, api: FakeApi):
    """Patch new_client to return a client over the fake API.

    Yields the list of :class:`ClientOptions` new_client was called with.
    """
    calls: list[ClientOptions] = []

    def fake_new_client(options: ClientOptions) -> CredhubClient:
        calls.append(options)
        return CredhubClient(options.url, static_transport(api))

    with patch("credhub_client.client.new_client", side_effect=fake_new_client):
        yield calls


def _invoke(*args: str):
    return runner.invoke(app, ["--plain", "--no-color", *args])


def _credential(value: Any, **extra: Any) -> dict[str, Any]:
    body = {
        "id": "5298e0e4-c3f5-4c73-a156-9ffce4b137f5",
        "name": "/c/db",
        "type": "value",
        "version_created_at": "2026-02-01T10:00:00Z",
        "value": value,
    }
    body.update(extra)
    return body


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"credhub {__version__}" in result.output

    def test_connection_flags_reach_options(self, built_with, api: FakeApi) -> None:
        api.body = {"credentials": []}
        result = _invoke(
            "--url", "https://cli.example/", "--client", "c", "--secret", "s",
            "--skip-tls-validation", "find", "--path", "/",
        )
        assert result.exit_code == 0, result.output
        options = built_with[0]
        assert options.url == "https://cli.example"
        assert options.uses_client_credentials
        assert options.skip_tls_validation is True


class TestFind:
    def test_find_by_path(self, built_with, api: FakeApi) -> None:
        api.body = {
            "credentials": [
                {"name": "/concourse/main/a", "version_created_at": "2026-02-01T10:00:00Z"},
                {"name": "/concourse/main/b"},
            ]
        }
        result = _invoke("find", "--path", "/concourse/main")

        assert result.exit_code == 0, result.output
        assert "name\tversion_created_at" in result.output
        assert "/concourse/main/a\t2026-02-01T10:00:00+00:00" in result.output
        assert api.requests[0].url.params["path"] == "/concourse/main"

    def test_find_by_name_json(self, built_with, api: FakeApi) -> None:
        api.body = {"credentials": [{"name": "/x/db-password"}]}
        result = runner.invoke(app, ["--json", "find", "--name", "db-password"])

        assert result.exit_code == 0, result.output
        assert api.requests[0].url.params["name-like"] == "db-password"
        assert '"name": "/x/db-password"' in result.output

    @pytest.mark.parametrize(
        "args",
        [["find"], ["find", "--path", "/a", "--name", "b"]],
        ids=["neither", "both"],
    )
    def test_exactly_one_selector(self, built_with, args: list[str]) -> None:
        result = _invoke(*args)
        assert result.exit_code == 2
        assert "exactly one of --path or --name" in result.output
        assert built_with == []


class TestGet:
    def test_get_by_name(self, built_with, api: FakeApi) -> None:
        api.body = {"data": [_credential("hunter2")]}
        result = _invoke("get", "--name", "/c/db")

        assert result.exit_code == 0, result.output
        assert "name\t/c/db" in result.output
        assert "value\thunter2" in result.output

    def test_value_only(self, built_with, api: FakeApi) -> None:
        api.body = {"data": [_credential("hunter2")]}
        result = _invoke("get", "--name", "/c/db", "--value-only")

        assert result.exit_code == 0, result.output
        assert "hunter2" in result.output
        assert "name\t" not in result.output

    def test_get_by_id(self, built_with, api: FakeApi) -> None:
        api.body = _credential({"user": "app"}, type="json")
        result = runner.invoke(app, ["--json", "get", "--id", "5298e0e4", "--value-only"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"user": "app"}
        assert api.requests[0].url.path == "/api/v1/data/5298e0e4"

    def test_absent_credential_exits_4(self, built_with, api: FakeApi) -> None:
        api.body = {"data": []}
        result = _invoke("get", "--name", "/missing")

        assert result.exit_code == 4
        assert "Error: Credential '/missing' not found" in result.output

    def test_access_denied_exits_3(self, built_with, api: FakeApi) -> None:
        api.status = 403
        api.body = {"error": "insufficient permissions"}
        result = _invoke("get", "--name", "/secret")

        assert result.exit_code == 3
        assert "insufficient permissions" in result.output


class TestSet:
    def test_set_plain_value(self, built_with, api: FakeApi) -> None:
        api.body = _credential("hunter2", name="/c/api-key")
        result = _invoke("set", "--name", "/c/api-key", "--value", "hunter2")

        assert result.exit_code == 0, result.output
        assert "Set credential /c/api-key" in result.output
        assert json.loads(api.requests[0].content) == {
            "name": "/c/api-key",
            "type": "value",
            "value": "hunter2",
        }

    def test_numeric_looking_value_stays_string(self, built_with, api: FakeApi) -> None:
        api.body = _credential("5432", name="/c/port")
        result = _invoke("set", "--name", "/c/port", "--value", "5432")

        assert result.exit_code == 0, result.output
        assert json.loads(api.requests[0].content)["value"] == "5432"

    def test_set_json_value(self, built_with, api: FakeApi) -> None:
        api.body = _credential({"user": "app"}, type="json")
        result = _invoke("set", "--name", "/c/db", "--type", "json", "--value", '{"user": "app"}')

        assert result.exit_code == 0, result.output
        sent = json.loads(api.requests[0].content)
        assert sent["type"] == "json"
        assert sent["value"] == {"user": "app"}

    def test_json_type_requires_object(self, built_with, api: FakeApi) -> None:
        result = _invoke("set", "--name", "/c/db", "--type", "json", "--value", "[1, 2]")

        assert result.exit_code == 2
        assert "JSON object" in result.output
        assert api.requests == []


class TestDelete:
    def test_delete(self, built_with, api: FakeApi) -> None:
        api.status = 204
        api.body = None
        result = _invoke("delete", "--name", "/c/db")

        assert result.exit_code == 0, result.output
        assert "Deleted credential /c/db" in result.output
        assert api.requests[0].method == "DELETE"

    def test_delete_missing_exits_4(self, built_with, api: FakeApi) -> None:
        api.status = 404
        api.body = {"error": "The request could not be completed because the credential does not exist"}
        result = _invoke("delete", "--name", "/missing")

        assert result.exit_code == 4


class TestConfigShow:
    def test_masks_secret(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CREDHUB_CLIENT", "app-client")
        monkeypatch.setenv("CREDHUB_SECRET", "super-secret")
        result = runner.invoke(app, ["--json", "--no-color", "config", "show"])

        assert result.exit_code == 0, result.output
        assert "super-secret" not in result.output
        assert '"secret": "***"' in result.output
        assert '"strategy": "client_credentials"' in result.output

    def test_mtls_strategy(self, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--json", "--no-color", "config", "show"])

        assert result.exit_code == 0, result.output
        assert '"strategy": "mtls"' in result.output
        assert '"url": "https://credhub.service.cf.internal:8844"' in result.output

    def test_invalid_config_file(self, isolated_config: Path) -> None:
        config_dir = isolated_config / "config" / "credhub-client"
        config_dir.mkdir(parents=True)
        (config_dir / "config.json").write_text("{broken", encoding="utf-8")

        result = _invoke("config", "show")
        assert result.exit_code == 1
        assert "Invalid config file" in result.output
