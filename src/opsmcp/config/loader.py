from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from platformdirs import user_config_dir

from .models import FAMILIES, TARGETS, ServerConfig
from ..errors import ConfigError

APP_NAME = "opsmcp"

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


def _candidate_paths(cwd: Path) -> list[Path]:
    # project-level (higher priority)
    return [
        cwd / ".opsmcp.yaml",
        cwd / "opsmcp.yaml",
    ]


def _global_candidate_paths() -> list[Path]:
    return [Path(user_config_dir(APP_NAME)) / "opsmcp.yaml"]


def _load_yaml(p: Path) -> dict[str, Any]:
    try:
        obj = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {p}: {e}") from e
    if not isinstance(obj, dict):
        raise ConfigError(f"Config {p} must contain a mapping at top level.")
    return obj


def _merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dicts(out[k], v)
        else:
            out[k] = v
    return out


def _expand_env_placeholders(s: str, env: Mapping[str, str]) -> str:
    def repl(m: re.Match) -> str:
        var = m.group(1)
        val = env.get(var)
        if not val:
            raise ConfigError(f"Placeholder '${{{var}}}' not found in environment or is empty.")
        return val

    return _ENV_PATTERN.sub(repl, s)


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip() == "true"


def load_server_config(
    family: str,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    explicit_path: Path | None = None,
) -> ServerConfig:
    """Build the immutable config for one server family.

    Merge order: global < project < explicit_path < environment.
    """
    if family not in FAMILIES:
        raise ConfigError(f"Unknown server family '{family}'. Known: {', '.join(FAMILIES)}")
    env = os.environ if env is None else env
    cwd = cwd or Path.cwd()

    merged: dict[str, Any] = {}
    loaded_from: Path | None = None

    for p in _global_candidate_paths():
        if p.is_file():
            merged = _merge_dicts(merged, _load_yaml(p))
            loaded_from = p

    for p in _candidate_paths(cwd):
        if p.is_file():
            merged = _merge_dicts(merged, _load_yaml(p))
            loaded_from = p
            break  # first match wins for project-level

    if explicit_path is not None:
        p = explicit_path.expanduser().resolve()
        if not p.is_file():
            raise ConfigError(f"Config file not found: {p}")
        merged = _merge_dicts(merged, _load_yaml(p))
        loaded_from = p

    section = merged.get(family) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{family}' section must be a mapping.")

    key, env_var, default = TARGETS[family]
    target = env.get(env_var) or section.get(key) or default
    if target is None and family == "git":
        target = str(cwd)
    if not target:
        raise ConfigError(f"{env_var} is required for the {family} server.")
    target = _expand_env_placeholders(str(target).strip(), env)

    allow_write = False
    if family == "postgres":
        if "PG_ALLOW_WRITE" in env:
            allow_write = _as_bool(env["PG_ALLOW_WRITE"])
        else:
            allow_write = _as_bool(section.get("allow_write", False))

    log_level = env.get("OPSMCP_LOG_LEVEL") or merged.get("log_level") or "INFO"

    return ServerConfig(
        family=family,
        target=target,
        allow_write=allow_write,
        log_level=str(log_level).upper(),
        loaded_from=loaded_from,
    )
