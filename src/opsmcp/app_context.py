from __future__ import annotations

import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Any

from .backends import docker, git, postgres, redis_kv
from .config.models import ServerConfig
from .errors import BackendUnavailable, ConfigError
from .tools.dispatcher import Dispatcher
from .tools.permissions import SafetyGate
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

BACKENDS: dict[str, ModuleType] = {
    "postgres": postgres,
    "docker": docker,
    "redis": redis_kv,
    "git": git,
}

VERSION = "0.1.0"


@dataclass
class AppContext:
    config: ServerConfig
    registry: ToolRegistry
    dispatcher: Dispatcher
    backend: Any = None

    @property
    def server_name(self) -> str:
        return BACKENDS[self.config.family].SERVER_NAME

    def close(self) -> None:
        """Release the backend handle (pool, client or socket)."""
        if self.backend is None:
            return
        try:
            self.backend.close()
        except Exception as e:
            logger.warning("Error while closing %s backend: %s", self.config.family, e)
        finally:
            self.backend = None

    @staticmethod
    def build(config: ServerConfig, backend: Any = None) -> "AppContext":
        """Wire registry, gate and dispatcher around an already-open backend (or none)."""
        registry = ToolRegistry()
        BACKENDS[config.family].register_tools(registry, backend)
        dispatcher = Dispatcher(registry, SafetyGate(config.write_policy))
        return AppContext(config=config, registry=registry, dispatcher=dispatcher, backend=backend)

    @staticmethod
    def open(config: ServerConfig) -> "AppContext":
        """Open the backend and verify it is reachable.

        Raises ConfigError when the target cannot be parsed and
        BackendUnavailable when it is not reachable; the caller exits non-zero.
        """
        try:
            backend = BACKENDS[config.family].open_backend(config)
        except (ConfigError, BackendUnavailable):
            raise
        except Exception as e:
            raise ConfigError(f"Invalid {config.family} target: {e}") from e
        try:
            backend.ping()
        except Exception:
            backend.close()
            raise
        logger.info("Connected %s backend at %s", config.family, getattr(backend, "target", config.family))
        return AppContext.build(config, backend)
