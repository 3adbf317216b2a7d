from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict

from .base import Tool, ToolSpec
from ..errors import DuplicateToolName, UnknownTool

@dataclass
class ToolRegistry:
    _tools: Dict[str, Tool] = field(default_factory=dict)

    def register(self, tool: Tool) -> None:
        name = tool.spec.name
        if name in self._tools:
            raise DuplicateToolName(name)
        self._tools[name] = tool

    def get(self, name: str) -> Tool:
        if name not in self._tools:
            raise UnknownTool(name)
        return self._tools[name]

    def lookup(self, name: str) -> ToolSpec:
        return self.get(name).spec

    def list_specs(self) -> list[ToolSpec]:
        return [t.spec for t in self._tools.values()]
