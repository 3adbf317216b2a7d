from __future__ import annotations

from typing import Any


class OpsMcpError(Exception):
    """Base class for every failure a tool call can surface to the caller."""


class DuplicateToolName(OpsMcpError):
    def __init__(self, name: str):
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class UnknownTool(OpsMcpError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ValidationFailure(OpsMcpError):
    """Raised before dispatch when arguments do not match a tool's fields."""

    def __init__(self, field: str, reason: str, *, expected: str | None = None, got: str | None = None):
        self.field = field
        self.reason = reason
        self.expected = expected
        self.got = got
        super().__init__(self._render())

    def _render(self) -> str:
        if self.expected is not None:
            return f'Invalid arguments: field "{self.field}" expected {self.expected}, got {self.got}'
        return f"Invalid arguments: {self.reason}"


class SafetyViolation(OpsMcpError):
    pass


class BackendFailure(OpsMcpError):
    """The backend operation failed; the message is shown to the caller as-is."""


class NotFound(BackendFailure):
    pass


class BackendUnavailable(OpsMcpError):
    """Startup-time connectivity failure. Fatal: the server refuses to start."""

    def __init__(self, target: str, cause: Any):
        super().__init__(f"Unable to reach backend at {target}: {cause}")
        self.target = target


class ConfigError(OpsMcpError):
    pass
