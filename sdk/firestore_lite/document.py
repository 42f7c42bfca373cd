"""
Documents fetched from the database.

A Document is a plain ``dict`` of decoded field values with the document's
identity kept aside in ``meta``. A deep copy of the fields taken at
construction (the baseline) lets the document report what the caller has
changed since it was read.

Example:
    >>> doc = await db.ref("users/alice").get()
    >>> doc["age"] += 1
    >>> doc.diff()
    {'age': 31}
    >>> doc.fields_mask()
    ['age']
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from .errors import DecodeError, ValidationError
from .utils import key_paths, trim_path
from .values import decode

if TYPE_CHECKING:
    from .database import Database
    from .reference import Reference

REQUIRED_KEYS = ("name", "createTime", "updateTime")


def _relative_path(name: str, db: Database) -> str:
    root = db.root_path
    if name.startswith(root):
        name = name[len(root):]
    return trim_path(name)


@dataclass(frozen=True)
class DocumentMeta:
    """Identity of a document.

    Attributes:
        db: Database the document was read from
        id: Last segment of the path
        path: Path relative to the database root
        name: Full resource name
        create_time: RFC 3339 creation time, as sent by the server
        update_time: RFC 3339 last update time, as sent by the server
    """

    db: Database
    id: str
    path: str
    name: str
    create_time: str
    update_time: str

    def __deepcopy__(self, memo: dict[int, Any]) -> DocumentMeta:
        return self


class Document(dict):
    """Decoded document fields plus metadata."""

    exists = True

    def __init__(self, raw: Mapping[str, Any], db: Database) -> None:
        if db is None:
            raise ValidationError('Argument "db" is required but missing', argument="db")
        if not isinstance(raw, Mapping) or any(key not in raw for key in REQUIRED_KEYS):
            raise DecodeError("Invalid Firestore Document")

        name = raw["name"]
        super().__init__(decode(raw, db))

        self.meta = DocumentMeta(
            db=db,
            id=name.split("/")[-1],
            path=_relative_path(name, db),
            name=name,
            create_time=raw["createTime"],
            update_time=raw["updateTime"],
        )
        self._baseline = copy.deepcopy(dict(self))

    def __repr__(self) -> str:
        return f"Document({self.meta.path!r}, {dict.__repr__(self)})"

    @property
    def ref(self) -> Reference:
        """Reference to this document."""
        return self.meta.db.ref(self.meta.path)

    def diff(
        self,
        modified: Mapping[str, Any] | None = None,
        baseline: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return the fields of ``modified`` that differ from ``baseline``.

        Nested mappings are compared field by field and only their changed
        leaves are kept; a nested mapping without changes is left out.

        Args:
            modified: Defaults to the document's current fields
            baseline: Defaults to the fields as they were when read
        """
        if modified is None:
            modified = self
        if baseline is None:
            baseline = self._baseline

        changes: dict[str, Any] = {}

        for key, value in modified.items():
            base = baseline.get(key, _MISSING)

            if isinstance(value, Mapping):
                nested = self.diff(value, base if isinstance(base, Mapping) else {})
                if nested:
                    changes[key] = nested
                continue

            if base is _MISSING or not _same(value, base):
                changes[key] = value

        return changes

    def fields_mask(self, diff: Mapping[str, Any] | None = None) -> list[str]:
        """Dotted paths of the fields in ``diff`` (default: ``self.diff()``).

        >>> doc.fields_mask({"a": "x", "b": {"c": "y", "d": "z"}})
        ['a', 'b.c', 'b.d']
        """
        return key_paths(self.diff() if diff is None else diff)


@dataclass(frozen=True)
class MissingDocument:
    """A document requested in a batch read that does not exist."""

    name: str
    path: str
    id: str
    exists = False

    @classmethod
    def from_name(cls, name: str, db: Database) -> MissingDocument:
        return cls(name=name, path=_relative_path(name, db), id=name.split("/")[-1])


_MISSING = object()


def _same(a: Any, b: Any) -> bool:
    # Structural equality that doesn't treat True == 1 or 1 == 1.0 as equal
    if type(a) is not type(b):
        return False
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(_same(x, y) for x, y in zip(a, b))
    if isinstance(a, Mapping):
        return a.keys() == b.keys() and all(_same(a[k], b[k]) for k in a)
    return a == b
