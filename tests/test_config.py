import pytest

from opsmcp.config import loader
from opsmcp.config.loader import load_server_config
from opsmcp.errors import ConfigError


@pytest.fixture(autouse=True)
def no_global_config(monkeypatch):
    monkeypatch.setattr(loader, "_global_candidate_paths", lambda: [])


def test_postgres_requires_database_url(tmp_path):
    with pytest.raises(ConfigError, match="DATABASE_URL"):
        load_server_config("postgres", cwd=tmp_path, env={})


def test_write_policy_only_for_exact_true(tmp_path):
    env = {"DATABASE_URL": "postgresql://localhost/app"}
    assert load_server_config("postgres", cwd=tmp_path, env=env).allow_write is False
    for value, expected in (("true", True), ("TRUE", False), ("1", False), ("false", False)):
        cfg = load_server_config("postgres", cwd=tmp_path, env={**env, "PG_ALLOW_WRITE": value})
        assert cfg.allow_write is expected
        assert cfg.write_policy.allow_write is expected


def test_defaults(tmp_path):
    assert load_server_config("redis", cwd=tmp_path, env={}).target == "redis://localhost:6379"
    assert load_server_config("docker", cwd=tmp_path, env={}).target == "unix:///var/run/docker.sock"
    assert load_server_config("git", cwd=tmp_path, env={}).target == str(tmp_path)


def test_project_yaml_with_placeholders(tmp_path):
    (tmp_path / "opsmcp.yaml").write_text(
        "log_level: debug\n"
        "postgres:\n"
        "  database_url: postgresql://app:${PGPASS}@db/app\n"
        "  allow_write: true\n",
        encoding="utf-8",
    )
    cfg = load_server_config("postgres", cwd=tmp_path, env={"PGPASS": "pw"})
    assert cfg.target == "postgresql://app:pw@db/app"
    assert cfg.allow_write is True
    assert cfg.log_level == "DEBUG"
    assert cfg.loaded_from == tmp_path / "opsmcp.yaml"


def test_environment_wins_over_file(tmp_path):
    (tmp_path / "opsmcp.yaml").write_text("redis:\n  redis_url: redis://file:6379\n", encoding="utf-8")
    cfg = load_server_config("redis", cwd=tmp_path, env={"REDIS_URL": "redis://env:6379"})
    assert cfg.target == "redis://env:6379"


def test_explicit_path_overrides_project(tmp_path):
    (tmp_path / "opsmcp.yaml").write_text("git:\n  repo_path: /project\n", encoding="utf-8")
    explicit = tmp_path / "other.yaml"
    explicit.write_text("git:\n  repo_path: /explicit\n", encoding="utf-8")
    cfg = load_server_config("git", cwd=tmp_path, env={}, explicit_path=explicit)
    assert cfg.target == "/explicit"


def test_missing_placeholder(tmp_path):
    (tmp_path / "opsmcp.yaml").write_text("redis:\n  redis_url: ${NOPE}\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="NOPE"):
        load_server_config("redis", cwd=tmp_path, env={})


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError):
        load_server_config("redis", cwd=tmp_path, env={}, explicit_path=tmp_path / "absent.yaml")


def test_unknown_family(tmp_path):
    with pytest.raises(ConfigError):
        load_server_config("mysql", cwd=tmp_path, env={})


def test_config_is_immutable(tmp_path):
    cfg = load_server_config("redis", cwd=tmp_path, env={})
    with pytest.raises(AttributeError):
        cfg.target = "redis://other"
