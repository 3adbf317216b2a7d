import json
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from opsmcp import main as cli
from opsmcp.app_context import AppContext
from opsmcp.config import loader
from opsmcp.config.models import ServerConfig
from opsmcp.errors import BackendUnavailable

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_global_candidate_paths", lambda: [])
    monkeypatch.chdir(tmp_path)
    for var in ("DATABASE_URL", "PG_ALLOW_WRITE", "REDIS_URL", "DOCKER_HOST", "GIT_REPO_PATH"):
        monkeypatch.delenv(var, raising=False)


def test_tools_lists_family_without_backend():
    result = runner.invoke(cli.app, ["tools", "redis"])
    assert result.exit_code == 0, result.output
    assert "redis-manager-mcp" in result.output


def test_unknown_family_rejected():
    result = runner.invoke(cli.app, ["tools", "mysql"])
    assert result.exit_code != 0


def test_missing_target_exits_with_config_error():
    result = runner.invoke(cli.app, ["call", "postgres", "list_tables"])
    assert result.exit_code == 2


def test_bad_json_args():
    result = runner.invoke(cli.app, ["call", "redis", "get", "--args", "{nope"])
    assert result.exit_code == 2


def test_unreachable_backend_exits_non_zero(monkeypatch):
    def refuse(cfg):
        raise BackendUnavailable(cfg.target, "connection refused")

    monkeypatch.setattr(AppContext, "open", staticmethod(refuse))
    result = runner.invoke(cli.app, ["serve", "redis"])
    assert result.exit_code == 1


def _fake_open(backend):
    def _open(cfg: ServerConfig) -> AppContext:
        return AppContext.build(cfg, backend)
    return staticmethod(_open)


def test_call_success_and_close(monkeypatch):
    backend = MagicMock()
    backend.client.get.return_value = "hello"
    monkeypatch.setattr(AppContext, "open", _fake_open(backend))
    result = runner.invoke(cli.app, ["call", "redis", "get", "--args", json.dumps({"key": "greeting"})])
    assert result.exit_code == 0, result.output
    assert "hello" in result.output
    backend.close.assert_called_once()


def test_call_failure_exit_code(monkeypatch):
    backend = MagicMock()
    monkeypatch.setattr(AppContext, "open", _fake_open(backend))
    result = runner.invoke(cli.app, ["call", "redis", "get"])
    assert result.exit_code == 1
    assert backend.client.get.call_count == 0


def test_malformed_target_exits_with_config_error(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "localhost:6379")
    result = runner.invoke(cli.app, ["call", "redis", "get", "--args", json.dumps({"key": "k"})])
    assert result.exit_code == 2
    assert "Traceback" not in result.output
