from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Protocol, Union

FieldKind = Literal["string", "number", "boolean", "enum"]

# Typed view over a call's arguments, produced only by validate_args().
ValidatedArgs = Mapping[str, Any]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    description: str = ""
    required: bool = True
    default: Any = None          # None means "no default"
    choices: tuple[str, ...] = ()  # enum members
    # (other_field, values): the field becomes required when other_field is one of values
    required_when: tuple[str, tuple[str, ...]] | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def json_schema(self) -> dict[str, Any]:
        if self.kind == "enum":
            out: dict[str, Any] = {"type": "string", "enum": list(self.choices)}
        else:
            out = {"type": self.kind}
        if self.description:
            out["description"] = self.description
        if self.has_default:
            out["default"] = self.default
        return out


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    fields: tuple[FieldSpec, ...] = ()
    # Name of the field holding raw command text that the safety gate inspects.
    gate_field: str | None = None
    # Prefix for messages of unexpected backend exceptions.
    error_prefix: str = "Error"

    @property
    def gated(self) -> bool:
        return self.gate_field is not None

    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {f.name: f.json_schema() for f in self.fields},
            "required": [f.name for f in self.fields if f.required],
        }


class Tool(Protocol):
    spec: ToolSpec
    def execute(self, args: ValidatedArgs) -> str: ...


def text_block(text: str) -> dict[str, str]:
    return {"type": "text", "text": text}


@dataclass(frozen=True)
class Success:
    content: tuple[dict[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def text(text: str) -> "Success":
        return Success(content=(text_block(text),))


@dataclass(frozen=True)
class Failure:
    message: str


ToolOutcome = Union[Success, Failure]
