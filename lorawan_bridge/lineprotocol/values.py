"""Closed set of field value kinds and their line-protocol tokens."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class UnsupportedValueKind(ValueError):
    """Raised when a payload leaf is not one of the encodable scalar kinds."""

    def __init__(self, value: Any, *, path: str | None = None, reason: str | None = None):
        self.value = value
        self.path = path
        kind = type(value).__name__
        message = f"unsupported value kind {kind}"
        if path:
            message += f" at {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ValueKind(str, Enum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"


@dataclass(frozen=True)
class FieldValue:
    kind: ValueKind
    raw: bool | int | float | str

    @classmethod
    def boolean(cls, value: bool) -> "FieldValue":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def integer(cls, value: int, *, path: str | None = None) -> "FieldValue":
        value = int(value)
        if not INT64_MIN <= value <= INT64_MAX:
            raise UnsupportedValueKind(value, path=path, reason="integer out of int64 range")
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def float_(cls, value: float, *, path: str | None = None) -> "FieldValue":
        try:
            number = float(value)
        except OverflowError as exc:
            raise UnsupportedValueKind(value, path=path, reason="number out of float range") from exc
        if not math.isfinite(number):
            raise UnsupportedValueKind(value, path=path, reason="non-finite float")
        return cls(ValueKind.FLOAT, number)

    @classmethod
    def string(cls, value: str) -> "FieldValue":
        return cls(ValueKind.STRING, str(value))


def is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str))


def is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_field_value(value: Any, *, path: str | None = None) -> FieldValue:
    """Classify a raw payload scalar, keeping its source numeric kind."""

    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return FieldValue.boolean(value)
    if isinstance(value, int):
        return FieldValue.integer(value, path=path)
    if isinstance(value, float):
        return FieldValue.float_(value, path=path)
    if isinstance(value, str):
        return FieldValue.string(value)
    raise UnsupportedValueKind(value, path=path)


def escape_string_field(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def encode_value(value: FieldValue) -> str:
    if value.kind is ValueKind.BOOLEAN:
        return "true" if value.raw else "false"
    if value.kind is ValueKind.INTEGER:
        return f"{value.raw}i"
    if value.kind is ValueKind.FLOAT:
        return f"{value.raw:.6f}"
    if value.kind is ValueKind.STRING:
        return f'"{escape_string_field(str(value.raw))}"'
    raise UnsupportedValueKind(value.raw)
