from __future__ import annotations

import json
import logging
from typing import Any, IO

from ..tools.dispatcher import Dispatcher
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class StdioServer:
    """Line-delimited JSON-RPC 2.0 server speaking the MCP tool methods.

    Requests are handled strictly one at a time, so responses leave in the
    order requests arrived.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        registry: ToolRegistry,
        *,
        name: str,
        version: str,
        stdin: IO[str],
        stdout: IO[str],
    ):
        self.dispatcher = dispatcher
        self.registry = registry
        self.name = name
        self.version = version
        self._stdin = stdin
        self._stdout = stdout

    def _write(self, msg: dict[str, Any]) -> None:
        self._stdout.write(json.dumps(msg, ensure_ascii=False) + "\n")
        self._stdout.flush()

    @staticmethod
    def _result(rid: Any, result: Any) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": rid, "result": result}

    @staticmethod
    def _error(rid: Any, code: int, message: str) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": rid, "error": {"code": code, "message": message}}

    def list_tools(self) -> list[dict[str, Any]]:
        return [
            {"name": s.name, "description": s.description, "inputSchema": s.input_schema()}
            for s in self.registry.list_specs()
        ]

    def handle_line(self, line: str) -> dict[str, Any] | None:
        line = line.strip()
        if not line:
            return None
        try:
            msg = json.loads(line)
        except json.JSONDecodeError as e:
            return self._error(None, PARSE_ERROR, f"Parse error: {e.msg}")
        return self.handle_message(msg)

    def handle_message(self, msg: Any) -> dict[str, Any] | None:
        if not isinstance(msg, dict) or not isinstance(msg.get("method"), str):
            rid = msg.get("id") if isinstance(msg, dict) else None
            return self._error(rid, INVALID_REQUEST, "Invalid request")
        method = msg["method"]
        if "id" not in msg:
            # notification (e.g. notifications/initialized): no reply
            logger.debug("Notification %s", method)
            return None
        rid = msg["id"]
        params = msg.get("params") or {}
        if not isinstance(params, dict):
            return self._error(rid, INVALID_PARAMS, "params must be an object")

        if method == "initialize":
            return self._result(rid, {
                "protocolVersion": params.get("protocolVersion") or PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            })
        if method == "ping":
            return self._result(rid, {})
        if method == "tools/list":
            return self._result(rid, {"tools": self.list_tools()})
        if method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str):
                return self._error(rid, INVALID_PARAMS, "tools/call requires a string 'name'")
            return self._result(rid, self.dispatcher.call_wire(name, params.get("arguments")))
        return self._error(rid, METHOD_NOT_FOUND, f"Unknown method: {method}")

    def serve_forever(self) -> None:
        """Serve until stdin closes."""
        logger.info("%s %s ready on stdio", self.name, self.version)
        for line in self._stdin:
            reply = self.handle_line(line)
            if reply is not None:
                self._write(reply)
        logger.info("stdin closed, shutting down")
