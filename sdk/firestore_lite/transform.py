"""
Server-side field transforms.

A Transform is a value whose result can only be computed by the server,
for example the request time or an atomic increment. Transforms are placed
in a record like any other value; when the record is encoded they are moved
out of the document fields into a separate ``transform`` write.

Example:
    >>> tx.update("counters/visits", {
    ...     "total": Transform.increment(1),
    ...     "last_seen": Transform.server_timestamp(),
    ... })

Invariants:
    - Operands are validated and encoded at construction
    - A Transform is immutable; binding a field path returns a copy
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable

from .errors import ValidationError

SERVER_TIME = "REQUEST_TIME"


class TransformKind(Enum):
    """Supported transforms."""

    SERVER_TIMESTAMP = "server_timestamp"
    INCREMENT = "increment"
    MAX = "max"
    MIN = "min"
    APPEND_TO_ARRAY = "append_to_array"
    REMOVE_FROM_ARRAY = "remove_from_array"

    @classmethod
    def from_str(cls, value: str) -> TransformKind:
        """Convert string to TransformKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValidationError(f'Invalid transform name: "{value}"', argument="kind")


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


# kind -> (wire field name, operand validator)
_RULES: dict[TransformKind, tuple[str, Callable[[Any], bool] | None]] = {
    TransformKind.SERVER_TIMESTAMP: ("setToServerValue", None),
    TransformKind.INCREMENT: ("increment", _is_number),
    TransformKind.MAX: ("maximum", _is_number),
    TransformKind.MIN: ("minimum", _is_number),
    TransformKind.APPEND_TO_ARRAY: ("appendMissingElements", _is_array),
    TransformKind.REMOVE_FROM_ARRAY: ("removeAllFromArray", _is_array),
}


@dataclass(frozen=True)
class Transform:
    """A server evaluated write on a single field.

    Attributes:
        kind: Which transform to apply
        operand: The native operand (None for server_timestamp)
        field_path: Dotted path of the field, set when attached to a write
        encoded: Wire form of the operand
    """

    kind: TransformKind
    operand: Any = None
    field_path: str | None = None
    encoded: Any = field(default=None, init=False, compare=False)

    def __post_init__(self) -> None:
        kind = self.kind
        if isinstance(kind, str):
            kind = TransformKind.from_str(kind)
        if not isinstance(kind, TransformKind):
            raise ValidationError(f'Invalid transform name: "{kind}"', argument="kind")
        object.__setattr__(self, "kind", kind)

        _, validator = _RULES[kind]
        if validator is not None and not validator(self.operand):
            expected = "a number" if validator is _is_number else "an array"
            raise ValidationError(
                f'The value for the transform "{kind.value}" needs to be {expected}.',
                argument="operand",
            )

        object.__setattr__(self, "encoded", self._encode_operand(kind))

    def _encode_operand(self, kind: TransformKind) -> Any:
        # values imports this module, so the codec is resolved lazily
        from .values import encode_value

        if kind is TransformKind.SERVER_TIMESTAMP:
            return SERVER_TIME
        if kind in (TransformKind.APPEND_TO_ARRAY, TransformKind.REMOVE_FROM_ARRAY):
            # The transform carries the array payload, not the full typed value
            return encode_value(list(self.operand))["arrayValue"]
        return encode_value(self.operand)

    @property
    def wire_name(self) -> str:
        return _RULES[self.kind][0]

    def at(self, field_path: str) -> Transform:
        """Return a copy of this transform bound to ``field_path``."""
        return replace(self, field_path=field_path)

    def to_json(self) -> dict[str, Any]:
        """Encode as a ``FieldTransform`` wire object."""
        if not self.field_path:
            raise ValidationError(
                "Transform is not attached to a field path",
                argument="field_path",
            )
        return {"fieldPath": self.field_path, self.wire_name: self.encoded}

    # Convenience constructors

    @classmethod
    def server_timestamp(cls) -> Transform:
        """Replaced by the server with the time the request was processed."""
        return cls(TransformKind.SERVER_TIMESTAMP)

    @classmethod
    def increment(cls, value: int | float) -> Transform:
        """Add ``value`` to the field's current value."""
        return cls(TransformKind.INCREMENT, value)

    @classmethod
    def max(cls, value: int | float) -> Transform:
        """Set the field to the larger of its current value and ``value``."""
        return cls(TransformKind.MAX, value)

    @classmethod
    def min(cls, value: int | float) -> Transform:
        """Set the field to the smaller of its current value and ``value``."""
        return cls(TransformKind.MIN, value)

    @classmethod
    def append_to_array(cls, values: list[Any]) -> Transform:
        """Append the elements not already present, creating the array if needed."""
        return cls(TransformKind.APPEND_TO_ARRAY, values)

    @classmethod
    def remove_from_array(cls, values: list[Any]) -> Transform:
        """Remove every occurrence of the given elements from the array."""
        return cls(TransformKind.REMOVE_FROM_ARRAY, values)
