from __future__ import annotations

from typing import Any

from .base import Failure, Success, ToolOutcome, text_block


def to_wire(outcome: ToolOutcome) -> dict[str, Any]:
    """Collapse an outcome into the MCP tools/call result shape."""
    if isinstance(outcome, Success):
        return {"content": [dict(b) for b in outcome.content]}
    if isinstance(outcome, Failure):
        return {"content": [text_block(outcome.message)], "isError": True}
    raise TypeError(f"Not a tool outcome: {outcome!r}")
