"""Container tools talking to the Docker Engine API over its unix socket."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import BackendFailure, BackendUnavailable, NotFound
from ..tools.base import FieldSpec, ToolSpec, ValidatedArgs
from ..tools.registry import ToolRegistry

SERVER_NAME = "docker-manager-mcp"
DEFAULT_STOP_TIMEOUT = 10
# Extra seconds on top of the stop timeout before the HTTP request gives up.
_REQUEST_GRACE = 30.0


def _raise_for_status(resp: httpx.Response, what: str) -> None:
    if resp.status_code < 400 and resp.status_code != 304:
        return
    if resp.status_code == 304:
        raise BackendFailure(f"{what}: container already in requested state")
    try:
        message = resp.json().get("message") or resp.text
    except (ValueError, AttributeError):
        message = resp.text
    message = (message or resp.reason_phrase).strip()
    if resp.status_code == 404:
        raise NotFound(f"{what}: {message}")
    raise BackendFailure(f"{what}: {message}")


class ContainerHandle:
    """A container reference resolved by the daemon on every request."""

    def __init__(self, client: httpx.Client, id_or_name: str):
        self.client = client
        self.id_or_name = id_or_name

    @property
    def _path(self) -> str:
        return f"/containers/{quote(self.id_or_name, safe='')}"

    def start(self) -> None:
        resp = self.client.post(f"{self._path}/start")
        _raise_for_status(resp, "Error starting container")

    def stop(self, timeout: int) -> None:
        resp = self.client.post(f"{self._path}/stop", params={"t": timeout}, timeout=timeout + _REQUEST_GRACE)
        _raise_for_status(resp, "Error stopping container")

    def restart(self, timeout: int) -> None:
        resp = self.client.post(f"{self._path}/restart", params={"t": timeout}, timeout=timeout + _REQUEST_GRACE)
        _raise_for_status(resp, "Error restarting container")


class DockerBackend:
    def __init__(self, client: httpx.Client, target: str = "docker"):
        self.client = client
        self.target = target

    @classmethod
    def from_host(cls, host: str) -> "DockerBackend":
        if not host.startswith("unix://"):
            raise BackendUnavailable(host, "only unix:// Docker hosts are supported")
        socket_path = host[len("unix://"):]
        transport = httpx.HTTPTransport(uds=socket_path)
        client = httpx.Client(transport=transport, base_url="http://docker", timeout=_REQUEST_GRACE)
        return cls(client, target=host)

    def container(self, id_or_name: str) -> ContainerHandle:
        return ContainerHandle(self.client, id_or_name)

    def list_containers(self, all: bool = False) -> list[dict[str, Any]]:
        resp = self.client.get("/containers/json", params={"all": "true" if all else "false"})
        _raise_for_status(resp, "Error listing containers")
        return resp.json()

    def ping(self) -> None:
        try:
            resp = self.client.get("/_ping")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise BackendUnavailable(self.target, e) from e

    def close(self) -> None:
        self.client.close()


def _project(c: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": c.get("Id"),
        "names": c.get("Names"),
        "image": c.get("Image"),
        "state": c.get("State"),
        "status": c.get("Status"),
        "created": c.get("Created"),
        "ports": [
            {
                "private": p.get("PrivatePort"),
                "public": p.get("PublicPort"),
                "type": p.get("Type"),
                "ip": p.get("IP"),
            }
            for p in c.get("Ports") or []
        ],
    }


_ID_OR_NAME = FieldSpec("idOrName", "string", "Container ID or name.")


def _timeout_field(description: str) -> FieldSpec:
    return FieldSpec("timeoutSeconds", "number", description, required=False, default=DEFAULT_STOP_TIMEOUT)


@dataclass
class ListContainersTool:
    backend: DockerBackend
    spec: ToolSpec = ToolSpec(
        name="list_containers",
        description="List Docker containers. Optional filter: { all: boolean } to include stopped containers.",
        fields=(
            FieldSpec("all", "boolean", "If true, include stopped containers (docker ps -a)", required=False, default=False),
        ),
        error_prefix="Error listing containers",
    )

    def execute(self, args: ValidatedArgs) -> str:
        containers = self.backend.list_containers(all=args["all"])
        return json.dumps([_project(c) for c in containers], indent=2, ensure_ascii=False)


@dataclass
class StartContainerTool:
    backend: DockerBackend
    spec: ToolSpec = ToolSpec(
        name="start_container",
        description="Start a Docker container by id or name.",
        fields=(_ID_OR_NAME,),
        error_prefix="Error starting container",
    )

    def execute(self, args: ValidatedArgs) -> str:
        name = args["idOrName"]
        self.backend.container(name).start()
        return f'Container "{name}" started successfully.'


@dataclass
class StopContainerTool:
    backend: DockerBackend
    spec: ToolSpec = ToolSpec(
        name="stop_container",
        description="Stop a Docker container by id or name.",
        fields=(
            _ID_OR_NAME,
            _timeout_field("Timeout in seconds before killing the container (SIGKILL). Default 10."),
        ),
        error_prefix="Error stopping container",
    )

    def execute(self, args: ValidatedArgs) -> str:
        name = args["idOrName"]
        timeout = int(args["timeoutSeconds"])
        self.backend.container(name).stop(timeout)
        return f'Container "{name}" stopped (timeout={timeout}s).'


@dataclass
class RestartContainerTool:
    backend: DockerBackend
    spec: ToolSpec = ToolSpec(
        name="restart_container",
        description="Restart a Docker container by id or name.",
        fields=(
            _ID_OR_NAME,
            _timeout_field("Timeout in seconds before killing the container on stop. Default 10."),
        ),
        error_prefix="Error restarting container",
    )

    def execute(self, args: ValidatedArgs) -> str:
        name = args["idOrName"]
        timeout = int(args["timeoutSeconds"])
        self.backend.container(name).restart(timeout)
        return f'Container "{name}" restarted (timeout={timeout}s).'


def open_backend(config) -> DockerBackend:
    return DockerBackend.from_host(config.target)


def register_tools(registry: ToolRegistry, backend: DockerBackend | None) -> None:
    registry.register(ListContainersTool(backend))
    registry.register(StartContainerTool(backend))
    registry.register(StopContainerTool(backend))
    registry.register(RestartContainerTool(backend))
