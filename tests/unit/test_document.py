"""
Unit tests for Document.

Tests cover:
- Construction from wire documents
- Metadata kept out of the record fields
- diff against the baseline read from the server
- fields_mask flattening
- MissingDocument
"""

import copy

import pytest

from sdk.firestore_lite.document import Document, MissingDocument
from sdk.firestore_lite.errors import DecodeError, ValidationError

from tests.conftest import ROOT, raw_document


@pytest.fixture
def doc(db):
    """A user document with nested and array fields."""
    return Document(
        raw_document(
            "users/alice",
            {
                "name": {"stringValue": "Alice"},
                "age": {"integerValue": "30"},
                "tags": {"arrayValue": {"values": [{"stringValue": "a"}]}},
                "address": {
                    "mapValue": {
                        "fields": {
                            "city": {"stringValue": "Paris"},
                            "zip": {"stringValue": "75001"},
                        }
                    }
                },
            },
            update_time="2024-05-01T10:00:00.000000Z",
        ),
        db,
    )


class TestDocumentConstruction:
    """Tests for building a Document from the wire format."""

    def test_fields_are_flat(self, doc):
        assert doc["name"] == "Alice"
        assert doc["address"] == {"city": "Paris", "zip": "75001"}

    def test_metadata(self, doc):
        assert doc.meta.id == "alice"
        assert doc.meta.path == "users/alice"
        assert doc.meta.name == f"{ROOT}/users/alice"
        assert doc.meta.update_time == "2024-05-01T10:00:00.000000Z"
        assert doc.meta.create_time == "2024-01-01T00:00:00.000000Z"

    def test_metadata_not_in_fields(self, doc):
        assert set(doc) == {"name", "age", "tags", "address"}

    def test_document_without_fields(self, db):
        assert Document(raw_document("users/empty"), db) == {}

    def test_nested_document_path(self, db):
        doc = Document(raw_document("rooms/a/messages/b"), db)
        assert doc.meta.path == "rooms/a/messages/b"
        assert doc.meta.id == "b"

    def test_ref(self, db, doc):
        assert doc.ref == db.ref("users/alice")

    def test_exists(self, doc):
        assert doc.exists is True

    @pytest.mark.parametrize("missing", ["name", "createTime", "updateTime"])
    def test_missing_required_key(self, db, missing):
        raw = raw_document("users/alice")
        del raw[missing]
        with pytest.raises(DecodeError, match="Invalid Firestore Document"):
            Document(raw, db)

    def test_requires_db(self):
        with pytest.raises(ValidationError):
            Document(raw_document("users/alice"), None)

    def test_deepcopy_shares_metadata(self, doc):
        clone = copy.deepcopy(doc)
        assert clone == doc
        assert clone.meta is doc.meta


class TestDocumentDiff:
    """Tests for Document.diff."""

    def test_unchanged_is_empty(self, doc):
        assert doc.diff() == {}

    def test_scalar_change(self, doc):
        doc["age"] = 31
        assert doc.diff() == {"age": 31}

    def test_new_field(self, doc):
        doc["email"] = "alice@example.com"
        assert doc.diff() == {"email": "alice@example.com"}

    def test_nested_change_is_minimal(self, doc):
        doc["address"]["city"] = "Lyon"
        assert doc.diff() == {"address": {"city": "Lyon"}}

    def test_array_compared_by_value(self, doc):
        doc["tags"] = ["a"]
        assert doc.diff() == {}
        doc["tags"].append("b")
        assert doc.diff() == {"tags": ["a", "b"]}

    def test_baseline_not_aliased(self, doc):
        doc["tags"].append("b")
        assert doc.diff() == {"tags": ["a", "b"]}

    def test_type_change_detected(self, doc):
        doc["age"] = 30.0
        assert doc.diff() == {"age": 30.0}

    def test_explicit_arguments(self, doc):
        assert doc.diff({"a": 1, "b": {"c": 2}}, {"a": 1, "b": {"c": 3}}) == {"b": {"c": 2}}


class TestFieldsMask:
    """Tests for Document.fields_mask."""

    def test_nested_paths(self, doc):
        assert doc.fields_mask({"a": "x", "b": {"c": "y", "d": "z"}}) == ["a", "b.c", "b.d"]

    def test_deep_single_child(self, doc):
        assert doc.fields_mask({"a": {"b": {"c": 1}}}) == ["a.b.c"]

    def test_arrays_are_leaves(self, doc):
        assert doc.fields_mask({"tags": ["a", {"b": 1}]}) == ["tags"]

    def test_defaults_to_diff(self, doc):
        doc["age"] = 31
        doc["address"]["zip"] = "69001"
        assert doc.fields_mask() == ["age", "address.zip"]


class TestMissingDocument:
    """Tests for MissingDocument."""

    def test_from_name(self, db):
        missing = MissingDocument.from_name(f"{ROOT}/users/ghost", db)
        assert missing.path == "users/ghost"
        assert missing.id == "ghost"
        assert missing.exists is False
