"""
Unit tests for the typed value codec.

Tests cover:
- Encoding of every native type
- Decoding of every wire tag
- Round trips through encode_value / decode_value
- Transform diversion while encoding records
- Decode errors for unknown tags and malformed payloads
"""

import json
import math
from datetime import datetime, timedelta, timezone

import pytest

from sdk.firestore_lite.errors import DecodeError, ValidationError
from sdk.firestore_lite.geopoint import GeoPoint
from sdk.firestore_lite.reference import Reference
from sdk.firestore_lite.transform import Transform
from sdk.firestore_lite.values import (
    _DECODERS,
    ValueType,
    decode,
    decode_value,
    encode,
    encode_value,
)

from tests.conftest import ROOT


class TestEncodeValue:
    """Tests for encode_value."""

    def test_null(self):
        assert encode_value(None) == {"nullValue": None}

    def test_bool_is_not_integer(self):
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(False) == {"booleanValue": False}

    def test_integer_is_string_encoded(self):
        assert encode_value(42) == {"integerValue": "42"}
        assert encode_value(-7) == {"integerValue": "-7"}

    def test_float(self):
        assert encode_value(1.5) == {"doubleValue": 1.5}

    def test_integral_float_stays_double(self):
        assert encode_value(3.0) == {"doubleValue": 3.0}

    @pytest.mark.parametrize(
        "value, expected",
        [(float("nan"), "NaN"), (float("inf"), "Infinity"), (float("-inf"), "-Infinity")],
    )
    def test_non_finite_float_is_string_encoded(self, value, expected):
        assert encode_value(value) == {"doubleValue": expected}

    def test_non_finite_record_is_strict_json(self):
        body = encode({"ratio": float("nan"), "limit": float("-inf")})
        assert json.loads(json.dumps(body, allow_nan=False)) == {
            "fields": {
                "ratio": {"doubleValue": "NaN"},
                "limit": {"doubleValue": "-Infinity"},
            }
        }

    def test_string(self):
        assert encode_value("hello") == {"stringValue": "hello"}

    def test_bytes_are_base64(self):
        assert encode_value(b"\x00\x01hi") == {"bytesValue": "AAFoaQ=="}

    def test_aware_datetime(self):
        dt = datetime(2024, 3, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)
        assert encode_value(dt) == {"timestampValue": "2024-03-01T12:30:00.123456Z"}

    def test_datetime_converted_to_utc(self):
        dt = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert encode_value(dt) == {"timestampValue": "2024-03-01T12:00:00.000000Z"}

    def test_naive_datetime_taken_as_utc(self):
        dt = datetime(2024, 3, 1, 12, 0)
        assert encode_value(dt) == {"timestampValue": "2024-03-01T12:00:00.000000Z"}

    def test_empty_array(self):
        assert encode_value([]) == {"arrayValue": {}}

    def test_array(self):
        assert encode_value([1, "a", None]) == {
            "arrayValue": {
                "values": [
                    {"integerValue": "1"},
                    {"stringValue": "a"},
                    {"nullValue": None},
                ]
            }
        }

    def test_tuple_encodes_as_array(self):
        assert encode_value((1,)) == {"arrayValue": {"values": [{"integerValue": "1"}]}}

    def test_map(self):
        assert encode_value({"a": 1}) == {
            "mapValue": {"fields": {"a": {"integerValue": "1"}}}
        }

    def test_empty_map(self):
        assert encode_value({}) == {"mapValue": {}}

    def test_geo_point(self):
        assert encode_value(GeoPoint(10.5, -20.25)) == {
            "geoPointValue": {"latitude": 10.5, "longitude": -20.25}
        }

    def test_reference(self, db):
        ref = db.ref("users/alice")
        assert encode_value(ref) == {"referenceValue": f"{ROOT}/users/alice"}

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            encode_value(object())

    def test_transform_inside_array_rejected(self):
        with pytest.raises(ValidationError):
            encode_value([Transform.increment(1)])

    def test_bare_transform_rejected(self):
        with pytest.raises(ValidationError):
            encode_value(Transform.server_timestamp())


class TestEncodeRecord:
    """Tests for encode (records and transform diversion)."""

    def test_empty_record_has_no_fields(self):
        assert encode({}) == {}

    def test_fields_wrapper(self):
        assert encode({"name": "Alice"}) == {
            "fields": {"name": {"stringValue": "Alice"}}
        }

    def test_transform_diverted(self):
        transforms = []
        encoded = encode({"name": "Alice", "visits": Transform.increment(1)}, transforms)

        assert encoded == {"fields": {"name": {"stringValue": "Alice"}}}
        assert len(transforms) == 1
        assert transforms[0].field_path == "visits"
        assert transforms[0].to_json() == {
            "fieldPath": "visits",
            "increment": {"integerValue": "1"},
        }

    def test_nested_transform_gets_dotted_path(self):
        transforms = []
        encoded = encode(
            {"stats": {"count": Transform.increment(2), "label": "x"}},
            transforms,
        )

        assert encoded == {
            "fields": {
                "stats": {"mapValue": {"fields": {"label": {"stringValue": "x"}}}}
            }
        }
        assert [t.field_path for t in transforms] == ["stats.count"]

    def test_transforms_dropped_without_sink(self):
        assert encode({"at": Transform.server_timestamp()}) == {"fields": {}}

    def test_transforms_keep_record_order(self):
        transforms = []
        encode(
            {
                "a": Transform.server_timestamp(),
                "b": Transform.max(3),
                "c": Transform.append_to_array(["x"]),
            },
            transforms,
        )
        assert [t.field_path for t in transforms] == ["a", "b", "c"]

    def test_original_transform_not_mutated(self):
        increment = Transform.increment(1)
        transforms = []
        encode({"n": increment}, transforms)
        assert increment.field_path is None


class TestDecodeValue:
    """Tests for decode_value."""

    def test_every_value_type_has_decoder(self):
        assert set(_DECODERS) == set(ValueType)

    def test_scalars(self, db):
        assert decode_value({"nullValue": None}, db) is None
        assert decode_value({"booleanValue": True}, db) is True
        assert decode_value({"integerValue": "42"}, db) == 42
        assert decode_value({"doubleValue": 2.5}, db) == 2.5
        assert decode_value({"stringValue": "hi"}, db) == "hi"

    def test_integer_type(self, db):
        assert isinstance(decode_value({"integerValue": "7"}, db), int)

    def test_double_special_values(self, db):
        value = decode_value({"doubleValue": "NaN"}, db)
        assert value != value
        assert decode_value({"doubleValue": "Infinity"}, db) == float("inf")

    def test_bytes(self, db):
        assert decode_value({"bytesValue": "AAFoaQ=="}, db) == b"\x00\x01hi"

    def test_timestamp_nanoseconds_truncated(self, db):
        value = decode_value({"timestampValue": "2024-03-01T12:30:00.123456789Z"}, db)
        assert value == datetime(2024, 3, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)

    def test_timestamp_without_fraction(self, db):
        value = decode_value({"timestampValue": "2024-03-01T12:30:00Z"}, db)
        assert value == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_reference(self, db):
        value = decode_value({"referenceValue": f"{ROOT}/users/alice"}, db)
        assert isinstance(value, Reference)
        assert value.path == "users/alice"

    def test_geo_point(self, db):
        value = decode_value({"geoPointValue": {"latitude": 1.0, "longitude": 2.0}}, db)
        assert value == GeoPoint(1.0, 2.0)

    def test_empty_array_forms(self, db):
        assert decode_value({"arrayValue": {}}, db) == []
        assert decode_value({"arrayValue": {"values": []}}, db) == []

    def test_nested_map(self, db):
        value = decode_value(
            {"mapValue": {"fields": {"a": {"mapValue": {"fields": {"b": {"integerValue": "1"}}}}}}},
            db,
        )
        assert value == {"a": {"b": 1}}

    def test_unknown_tag(self, db):
        with pytest.raises(DecodeError) as exc_info:
            decode_value({"fancyValue": 1}, db)
        assert exc_info.value.value_type == "fancyValue"

    def test_multiple_tags(self, db):
        with pytest.raises(DecodeError):
            decode_value({"stringValue": "a", "integerValue": "1"}, db)

    def test_not_a_mapping(self, db):
        with pytest.raises(DecodeError):
            decode_value("stringValue", db)

    def test_malformed_payload(self, db):
        with pytest.raises(DecodeError):
            decode_value({"integerValue": "forty-two"}, db)

    def test_decode_requires_db(self):
        with pytest.raises(ValidationError):
            decode({"fields": {}}, None)


class TestRoundTrip:
    """decode(encode(x)) == x for supported shapes."""

    @pytest.mark.parametrize(
        "value",
        [
            None,
            True,
            0,
            -123456789012,
            3.25,
            "",
            "text",
            b"bytes",
            [],
            [1, [2, "three"], {"four": 4}],
            {"nested": {"deeper": {"list": [True, None]}}},
        ],
    )
    def test_round_trip(self, db, value):
        assert decode_value(encode_value(value), db) == value

    def test_nan(self, db):
        assert math.isnan(decode_value(encode_value(float("nan")), db))

    @pytest.mark.parametrize("value", [float("inf"), float("-inf")])
    def test_infinity(self, db, value):
        assert decode_value(encode_value(value), db) == value

    def test_datetime_compares_by_instant(self, db):
        dt = datetime(2024, 1, 2, 3, 4, 5, 6000, tzinfo=timezone(timedelta(hours=-5)))
        assert decode_value(encode_value(dt), db) == dt

    def test_reference(self, db):
        ref = db.ref("rooms/a/messages/b")
        assert decode_value(encode_value(ref), db) == ref

    def test_geo_point(self, db):
        point = GeoPoint(-45.0, 170.5)
        assert decode_value(encode_value(point), db) == point

    def test_record(self, db):
        record = {"name": "Alice", "age": 30, "tags": ["a", "b"], "address": {"city": "Paris"}}
        assert decode(encode(record), db) == record
