from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..tools.permissions import WritePolicy

FAMILIES = ("postgres", "docker", "redis", "git")

# family -> (yaml key, env var, default); default None means the target is required
TARGETS: dict[str, tuple[str, str, str | None]] = {
    "postgres": ("database_url", "DATABASE_URL", None),
    "docker": ("docker_host", "DOCKER_HOST", "unix:///var/run/docker.sock"),
    "redis": ("redis_url", "REDIS_URL", "redis://localhost:6379"),
    "git": ("repo_path", "GIT_REPO_PATH", None),  # None -> current directory
}


@dataclass(frozen=True)
class ServerConfig:
    """Process configuration for one server. Built once at startup, never re-read."""

    family: str
    target: str
    allow_write: bool = False
    log_level: str = "INFO"
    loaded_from: Path | None = None

    @property
    def write_policy(self) -> WritePolicy:
        return WritePolicy(allow_write=self.allow_write)
