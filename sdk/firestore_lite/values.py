"""
Typed value codec.

Firestore sends every field as a "typed value": a JSON object with exactly
one key naming the type, e.g. ``{"integerValue": "42"}``. This module
converts between those objects and native Python values:

    None      <-> nullValue
    bool      <-> booleanValue
    int       <-> integerValue (decimal string on the wire)
    float     <-> doubleValue (also for integral floats such as 3.0;
                  NaN and the infinities as "NaN" / "Infinity" / "-Infinity")
    datetime  <-> timestampValue (RFC 3339, UTC)
    str       <-> stringValue
    bytes     <-> bytesValue (base64 on the wire)
    Reference <-> referenceValue (full resource name on the wire)
    GeoPoint  <-> geoPointValue
    list      <-> arrayValue
    dict      <-> mapValue

Encoding a record also partitions it: Transform values are removed from the
fields and collected into a separate list, since the API applies them in a
dedicated transform write.

Invariants:
    - Every ValueType has a decoder
    - An empty list encodes as ``{"arrayValue": {}}``
    - An empty record encodes as ``{}``
"""

from __future__ import annotations

import base64
import math
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

from .errors import DecodeError, ValidationError
from .geopoint import GeoPoint
from .transform import Transform
from .utils import format_timestamp, parse_timestamp

if TYPE_CHECKING:
    from .database import Database


class ValueType(Enum):
    """Type tags of the typed value union."""

    NULL = "nullValue"
    BOOLEAN = "booleanValue"
    INTEGER = "integerValue"
    DOUBLE = "doubleValue"
    TIMESTAMP = "timestampValue"
    STRING = "stringValue"
    BYTES = "bytesValue"
    REFERENCE = "referenceValue"
    GEO_POINT = "geoPointValue"
    ARRAY = "arrayValue"
    MAP = "mapValue"

    @classmethod
    def from_tag(cls, tag: str) -> ValueType:
        for value_type in cls:
            if value_type.value == tag:
                return value_type
        raise DecodeError(f'Invalid Firestore value_type "{tag}"', value_type=tag)


# =========================
# Decoding
# =========================


def _decode_double(payload: Any, db: Database) -> float:
    # NaN and the infinities arrive as strings
    return float(payload)


def _decode_array(payload: Any, db: Database) -> list[Any]:
    return [decode_value(item, db) for item in (payload or {}).get("values", [])]


def _decode_reference(payload: str, db: Database) -> Any:
    root = db.root_path
    path = payload[len(root):] if payload.startswith(root) else payload
    return db.ref(path)


def _decode_geo_point(payload: Any, db: Database) -> GeoPoint:
    return GeoPoint(payload.get("latitude", 0.0), payload.get("longitude", 0.0))


def _passthrough(payload: Any, db: Database) -> Any:
    return payload


_DECODERS: dict[ValueType, Callable[[Any, "Database"], Any]] = {
    ValueType.NULL: lambda payload, db: None,
    ValueType.BOOLEAN: _passthrough,
    ValueType.INTEGER: lambda payload, db: int(payload),
    ValueType.DOUBLE: _decode_double,
    ValueType.TIMESTAMP: lambda payload, db: parse_timestamp(payload),
    ValueType.STRING: _passthrough,
    ValueType.BYTES: lambda payload, db: base64.b64decode(payload),
    ValueType.REFERENCE: _decode_reference,
    ValueType.GEO_POINT: _decode_geo_point,
    ValueType.ARRAY: _decode_array,
    ValueType.MAP: lambda payload, db: decode(payload, db),
}


def decode_value(value: Mapping[str, Any], db: Database) -> Any:
    """Decode a single typed value into a native value.

    Raises:
        DecodeError: If the value doesn't carry exactly one known type tag
    """
    if not isinstance(value, Mapping) or len(value) != 1:
        raise DecodeError(f"Invalid Firestore value {value!r}")

    (tag, payload), = value.items()
    value_type = ValueType.from_tag(tag)

    try:
        return _DECODERS[value_type](payload, db)
    except (TypeError, ValueError, AttributeError) as e:
        raise DecodeError(
            f"Malformed {tag} payload {payload!r}: {e}",
            value_type=tag,
        ) from e


def decode(map_value: Mapping[str, Any] | None, db: Database) -> dict[str, Any]:
    """Decode the ``fields`` of a map value or wire document into a dict."""
    if db is None:
        raise ValidationError('Argument "db" is required but missing', argument="db")

    fields = (map_value or {}).get("fields") or {}
    return {key: decode_value(value, db) for key, value in fields.items()}


# =========================
# Encoding
# =========================


def _non_finite_double(value: float) -> str:
    # JSON has no literal for these, the API accepts them as strings
    if math.isnan(value):
        return "NaN"
    return "Infinity" if value > 0 else "-Infinity"


def encode_value(
    value: Any,
    transforms: list[Transform] | None = None,
    parent_path: str | None = None,
) -> dict[str, Any]:
    """Encode a native value as a typed value.

    Mappings are encoded through :func:`encode`, so transforms nested inside
    them are collected into ``transforms`` under their dotted path.

    Raises:
        ValidationError: If the value's type is not supported
    """
    if value is None:
        return {ValueType.NULL.value: None}

    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return {ValueType.BOOLEAN.value: value}

    if isinstance(value, int):
        return {ValueType.INTEGER.value: str(value)}

    if isinstance(value, float):
        if not math.isfinite(value):
            return {ValueType.DOUBLE.value: _non_finite_double(value)}
        return {ValueType.DOUBLE.value: value}

    if isinstance(value, datetime):
        return {ValueType.TIMESTAMP.value: format_timestamp(value)}

    if isinstance(value, str):
        return {ValueType.STRING.value: value}

    if isinstance(value, (bytes, bytearray)):
        return {ValueType.BYTES.value: base64.b64encode(bytes(value)).decode("ascii")}

    if isinstance(value, Transform):
        raise ValidationError(
            f"Transforms can only be used as field values, found one in {parent_path or 'an array'}",
            argument=parent_path,
        )

    if isinstance(value, (list, tuple)):
        if not value:
            return {ValueType.ARRAY.value: {}}
        return {
            ValueType.ARRAY.value: {
                "values": [encode_value(item, parent_path=parent_path) for item in value]
            }
        }

    if isinstance(value, Mapping):
        return {ValueType.MAP.value: encode(value, transforms, parent_path)}

    # Custom types (Reference, GeoPoint) carry their own encoder
    to_json = getattr(value, "to_json", None)
    if callable(to_json):
        return to_json()

    raise ValidationError(
        f"Unsupported value type {type(value).__name__} at {parent_path or 'root'}",
        argument=parent_path,
    )


def encode(
    record: Mapping[str, Any],
    transforms: list[Transform] | None = None,
    parent_path: str | None = None,
) -> dict[str, Any]:
    """Encode a record as a map value / wire document body.

    Transform values are bound to their dotted field path, appended to
    ``transforms`` (when given) and left out of the encoded fields.

    Returns:
        ``{"fields": {...}}``, or ``{}`` for an empty record
    """
    if not record:
        return {}

    fields: dict[str, Any] = {}

    for key, value in record.items():
        path = f"{parent_path}.{key}" if parent_path else key

        if isinstance(value, Transform):
            if transforms is not None:
                transforms.append(value.at(path))
            continue

        fields[key] = encode_value(value, transforms, path)

    return {"fields": fields}
