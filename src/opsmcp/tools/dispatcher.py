from __future__ import annotations

import logging
from typing import Any, Mapping

from .base import Failure, Success, ToolOutcome
from .normalize import to_wire
from .permissions import SafetyGate
from .registry import ToolRegistry
from .validation import validate_args
from ..errors import OpsMcpError, SafetyViolation, UnknownTool, ValidationFailure

logger = logging.getLogger(__name__)


class Dispatcher:
    """Runs one tool call: lookup, validation, safety gate, execution.

    Every call ends in exactly one outcome. Backend exceptions are converted to
    Failure here and never reach the transport. Calls are attempted once.
    """

    def __init__(self, registry: ToolRegistry, gate: SafetyGate):
        self.registry = registry
        self.gate = gate

    def call(self, tool_name: str, raw_args: Mapping[str, Any] | None = None) -> ToolOutcome:
        try:
            tool = self.registry.get(tool_name)
        except UnknownTool as e:
            logger.info("%s", e)
            return Failure(str(e))

        spec = tool.spec
        keys = sorted(raw_args) if isinstance(raw_args, Mapping) else raw_args
        logger.debug("Call %s args=%s", spec.name, keys)

        try:
            args = validate_args(spec, raw_args)
            self.gate.check(spec, args)
        except (ValidationFailure, SafetyViolation) as e:
            logger.info("Rejected %s: %s", spec.name, e)
            return Failure(str(e))

        try:
            text = tool.execute(args)
        except OpsMcpError as e:
            logger.warning("%s failed: %s", spec.name, e)
            return Failure(str(e))
        except Exception as e:
            logger.warning("%s failed: %s", spec.name, e)
            logger.debug("Backend traceback for %s", spec.name, exc_info=True)
            return Failure(f"{spec.error_prefix}: {e}")
        return Success.text(text)

    def call_wire(self, tool_name: str, raw_args: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return to_wire(self.call(tool_name, raw_args))
