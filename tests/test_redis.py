import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from opsmcp.backends.redis_kv import RedisBackend, register_tools
from opsmcp.errors import BackendUnavailable
from opsmcp.tools.base import Failure, Success
from opsmcp.tools.dispatcher import Dispatcher
from opsmcp.tools.permissions import SafetyGate, WritePolicy
from opsmcp.tools.registry import ToolRegistry

from conftest import FakeRedis


@pytest.fixture
def client():
    return FakeRedis()


@pytest.fixture
def dispatcher(client):
    registry = ToolRegistry()
    register_tools(registry, RedisBackend(client))
    return Dispatcher(registry, SafetyGate(WritePolicy()))


def test_set_then_get(dispatcher):
    assert dispatcher.call("set", {"key": "greeting", "value": "hi"}) == Success.text("OK")
    assert dispatcher.call("get", {"key": "greeting"}) == Success.text("hi")


def test_get_missing_key_returns_null_text(dispatcher):
    assert dispatcher.call("get", {"key": "nope"}) == Success.text("null")


def test_del_present_key(dispatcher, client):
    client.data["k"] = "v"
    assert dispatcher.call("del", {"key": "k"}) == Success.text("OK")
    assert "k" not in client.data


def test_del_absent_key_is_still_success(dispatcher):
    outcome = dispatcher.call("del", {"key": "k"})
    assert isinstance(outcome, Success)
    assert outcome.content[0]["text"] == "Key not found"


def test_list_keys_defaults_to_all(dispatcher, client):
    client.data.update({"user:1": "a", "user:2": "b", "session:1": "c"})
    out = dispatcher.call("list_keys", {})
    assert json.loads(out.content[0]["text"]) == ["session:1", "user:1", "user:2"]


def test_list_keys_with_pattern(dispatcher, client):
    client.data.update({"user:1": "a", "session:1": "c"})
    out = dispatcher.call("list_keys", {"pattern": "user:*"})
    assert json.loads(out.content[0]["text"]) == ["user:1"]


def test_set_requires_string_value(dispatcher, client):
    outcome = dispatcher.call("set", {"key": "n", "value": 5})
    assert isinstance(outcome, Failure)
    assert client.data == {}


def test_backend_error_becomes_failure(client):
    def fail(key):
        raise RedisConnectionError("Connection refused")

    client.get = fail
    registry = ToolRegistry()
    register_tools(registry, RedisBackend(client))
    outcome = Dispatcher(registry, SafetyGate(WritePolicy())).call("get", {"key": "k"})
    assert outcome == Failure("Error getting key: Connection refused")


def test_ping_failure_is_unavailable(client):
    def fail():
        raise RedisConnectionError("Connection refused")

    client.ping = fail
    with pytest.raises(BackendUnavailable):
        RedisBackend(client, target="redis://localhost:6379").ping()


def test_close_releases_client(client):
    RedisBackend(client).close()
    assert client.closed
