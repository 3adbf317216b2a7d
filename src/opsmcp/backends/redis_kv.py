"""Key-value tools backed by a single long-lived redis-py client."""

from __future__ import annotations

import json
from dataclasses import dataclass

from redis import Redis
from redis.exceptions import RedisError

from ..errors import BackendUnavailable
from ..tools.base import FieldSpec, ToolSpec, ValidatedArgs
from ..tools.registry import ToolRegistry

SERVER_NAME = "redis-manager-mcp"


class RedisBackend:
    def __init__(self, client: Redis, target: str = "redis"):
        self.client = client
        self.target = target

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(Redis.from_url(url, decode_responses=True), target=url)

    def ping(self) -> None:
        try:
            self.client.ping()
        except RedisError as e:
            raise BackendUnavailable(self.target, e) from e

    def close(self) -> None:
        self.client.close()


_KEY = "key"


@dataclass
class GetTool:
    backend: RedisBackend
    spec: ToolSpec = ToolSpec(
        name="get",
        description="Get the value of a key.",
        fields=(FieldSpec(_KEY, "string", "The key to retrieve."),),
        error_prefix="Error getting key",
    )

    def execute(self, args: ValidatedArgs) -> str:
        value = self.backend.client.get(args[_KEY])
        return value if value is not None else "null"


@dataclass
class SetTool:
    backend: RedisBackend
    spec: ToolSpec = ToolSpec(
        name="set",
        description="Set the value of a key.",
        fields=(
            FieldSpec(_KEY, "string", "The key to set."),
            FieldSpec("value", "string", "The value to set."),
        ),
        error_prefix="Error setting key",
    )

    def execute(self, args: ValidatedArgs) -> str:
        self.backend.client.set(args[_KEY], args["value"])
        return "OK"


@dataclass
class DelTool:
    backend: RedisBackend
    spec: ToolSpec = ToolSpec(
        name="del",
        description="Delete a key.",
        fields=(FieldSpec(_KEY, "string", "The key to delete."),),
        error_prefix="Error deleting key",
    )

    def execute(self, args: ValidatedArgs) -> str:
        removed = self.backend.client.delete(args[_KEY])
        # a missing key is a normal answer, not an error
        return "OK" if removed == 1 else "Key not found"


@dataclass
class ListKeysTool:
    backend: RedisBackend
    spec: ToolSpec = ToolSpec(
        name="list_keys",
        description="List keys matching a pattern.",
        fields=(
            FieldSpec("pattern", "string", "The pattern to match. Default '*'.", required=False, default="*"),
        ),
        error_prefix="Error listing keys",
    )

    def execute(self, args: ValidatedArgs) -> str:
        keys = self.backend.client.keys(args["pattern"])
        return json.dumps(list(keys), indent=2, ensure_ascii=False)


def open_backend(config) -> RedisBackend:
    return RedisBackend.from_url(config.target)


def register_tools(registry: ToolRegistry, backend: RedisBackend | None) -> None:
    registry.register(GetTool(backend))
    registry.register(SetTool(backend))
    registry.register(DelTool(backend))
    registry.register(ListKeysTool(backend))
