"""Builds GraphQL documents with every value serialized, never interpolated.

GraphQL string literals accept JSON string syntax, so user-controlled text
(titles, bodies, branch names, owner/repo names) goes through json.dumps.
Enum values are bare names and are checked against the GraphQL name grammar.
"""

import json
import re
from dataclasses import dataclass
from typing import Mapping, Sequence, Union

_NAME_RE = re.compile(r'^[_A-Za-z][_0-9A-Za-z]*$')


@dataclass(frozen=True)
class Enum:
    """A GraphQL enum value such as OPEN or CREATED_AT."""
    name: str

    def __post_init__(self) -> None:
        if not _NAME_RE.match(self.name):
            raise ValueError(f"Invalid GraphQL enum value: {self.name!r}")


Value = Union[None, bool, int, str, Enum, Sequence['Value'], Mapping[str, 'Value']]


def literal(value: Value) -> str:
    """Serialize a Python value as a GraphQL input literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, Mapping):
        return input_object(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(literal(v) for v in value) + "]"
    raise TypeError(f"Cannot serialize {type(value).__name__} into GraphQL")


def input_object(fields: Mapping[str, Value]) -> str:
    """Serialize a mapping as a GraphQL input object, keeping key order."""
    parts = []
    for key, value in fields.items():
        if not _NAME_RE.match(key):
            raise ValueError(f"Invalid GraphQL field name: {key!r}")
        parts.append(f"{key}: {literal(value)}")
    return "{" + ", ".join(parts) + "}"


def field_call(name: str, arguments: Mapping[str, Value], selection: str) -> str:
    """Render name(arg: value, ...) { selection }."""
    args = ", ".join(f"{k}: {literal(v)}" for k, v in arguments.items())
    return f"{name}({args}) {{ {selection} }}"


def alias(index: int) -> str:
    return f"op{index}"


def document(operation: str, fields: Sequence[str]) -> str:
    """Join aliased fields op0, op1, ... into one query or mutation."""
    if operation not in ("query", "mutation"):
        raise ValueError(f"Unknown operation type: {operation}")
    body = "\n".join(f"  {alias(i)}: {f}" for i, f in enumerate(fields))
    return f"{operation} {{\n{body}\n}}"
