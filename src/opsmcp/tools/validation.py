from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from .base import FieldSpec, ToolSpec, ValidatedArgs
from ..errors import ValidationFailure


def kind_of(value: Any) -> str:
    """JSON-ish name of a raw value's runtime type, used in error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _check(spec: FieldSpec, value: Any) -> Any:
    got = kind_of(value)
    expected = "string" if spec.kind == "enum" else spec.kind
    if got != expected:
        raise ValidationFailure(spec.name, "wrong kind", expected=spec.kind, got=got)
    if spec.kind == "enum" and value not in spec.choices:
        raise ValidationFailure(
            spec.name,
            f'field "{spec.name}" must be one of {", ".join(spec.choices)}; got "{value}"',
        )
    return value


def validate_args(spec: ToolSpec, raw_args: Mapping[str, Any] | None) -> ValidatedArgs:
    """Check raw call arguments against a tool's fields, in declaration order.

    Fields not declared by the tool are ignored. An optional field with no
    default that is absent from the call stays absent from the result, and the
    tool applies its own default.
    """
    if raw_args is None:
        raw_args = {}
    if not isinstance(raw_args, Mapping):
        raise ValidationFailure("arguments", "wrong kind", expected="object", got=kind_of(raw_args))

    out: dict[str, Any] = {}
    for f in spec.fields:
        if f.name in raw_args:
            out[f.name] = _check(f, raw_args[f.name])
        elif f.required:
            raise ValidationFailure(f.name, f'missing required field "{f.name}"')
        elif f.has_default:
            out[f.name] = f.default

    # Conditional requirements are evaluated once every field is known.
    for f in spec.fields:
        if f.required_when is None or f.name in out:
            continue
        other, values = f.required_when
        if out.get(other) in values:
            raise ValidationFailure(f.name, f"{f.name} is required for {out[other]} {other}")
    return MappingProxyType(out)
