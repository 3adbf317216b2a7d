from __future__ import annotations

import logging
from dataclasses import dataclass

from .base import ToolSpec, ValidatedArgs
from ..errors import SafetyViolation

logger = logging.getLogger(__name__)

READ_ONLY_PREFIX = "select"


def is_read_only_sql(sql: str) -> bool:
    """Textual prefix check, not a parser.

    A statement whose first word is SELECT passes even if it writes through
    a data-modifying CTE or a function call.
    """
    return sql.strip().lower().startswith(READ_ONLY_PREFIX)


@dataclass(frozen=True)
class WritePolicy:
    """Process-wide write permission, fixed at startup."""

    allow_write: bool = False
    # Shown to the caller when a statement is blocked.
    hint: str = "Set PG_ALLOW_WRITE=true to enable write queries."

    @property
    def violation_message(self) -> str:
        return f"Error: Only SELECT queries are allowed for safety. {self.hint}"


class SafetyGate:
    def __init__(self, policy: WritePolicy):
        self.policy = policy

    def check(self, spec: ToolSpec, args: ValidatedArgs) -> None:
        """Raise SafetyViolation when a gated tool's command text is not read-only."""
        if not spec.gated or self.policy.allow_write:
            return
        text = args.get(spec.gate_field, "")
        if not is_read_only_sql(str(text)):
            logger.info("Blocked non-read-only statement for tool %s", spec.name)
            raise SafetyViolation(self.policy.violation_message)
