"""
References to documents and collections.

A Reference is an immutable pointer to a path in the document tree. Paths
with an even number of segments point to documents, odd ones to
collections, and the empty path is the root of the database.

Example:
    >>> users = db.ref("users")
    >>> alice = users.child("alice")
    >>> await alice.set({"name": "Alice"})
    >>> alice.parent == users
    True
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal, Mapping

from .document import Document
from .errors import ValidationError
from .listing import DocumentList
from .utils import is_collection_path, is_document_path, key_paths, to_query_string, trim_path
from .values import encode

if TYPE_CHECKING:
    from .database import Database
    from .query import Query

logger = logging.getLogger(__name__)

# snake_case option -> REST query parameter
_GET_OPTIONS = {
    "page_size": "pageSize",
    "page_token": "pageToken",
    "order_by": "orderBy",
    "show_missing": "showMissing",
    "mask": "mask",
}


class Reference:
    """Pointer to a document, a collection or the root of a database.

    Attributes:
        db: Owning database
        path: Path relative to the database root
        id: Last segment of the path
        name: Full resource name
        endpoint: REST endpoint of the path
    """

    __slots__ = ("db", "path", "id", "name", "endpoint")

    def __init__(self, path: str, db: Database) -> None:
        if db is None:
            raise ValidationError('Argument "db" is required but missing', argument="db")
        if not isinstance(path, str):
            raise ValidationError(
                f"Expected the path to be a string, got {type(path).__name__}",
                argument="path",
            )

        path = trim_path(path)

        self.db = db
        self.path = path
        self.id = path.split("/")[-1]
        self.name = f"{db.root_path}/{path}" if path else db.root_path
        self.endpoint = f"{db.endpoint}/{path}" if path else db.endpoint

    def __repr__(self) -> str:
        return f"Reference({self.path!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Reference):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    # References are immutable, copies can share the database handle
    def __copy__(self) -> Reference:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> Reference:
        return self

    @property
    def is_root(self) -> bool:
        return self.path == ""

    @property
    def is_collection(self) -> bool:
        return is_collection_path(self.path)

    @property
    def parent(self) -> Reference:
        """Reference to the parent document or collection."""
        if self.is_root:
            raise ValidationError("Can't get the parent of root", argument="path")
        return Reference(self.path.rpartition("/")[0], self.db)

    @property
    def parent_collection(self) -> Reference:
        """Reference to the closest ancestor collection.

        For a collection this skips its parent document; for a document it is
        the collection the document lives in.
        """
        if self.is_root:
            raise ValidationError("Can't get parent of a root collection", argument="path")
        if self.is_collection:
            return Reference("/".join(self.path.split("/")[:-2]), self.db)
        return self.parent

    def child(self, path: str) -> Reference:
        """Reference to ``path`` below this one."""
        if not isinstance(path, str):
            raise ValidationError("Expected the child path to be a string", argument="path")
        if path.startswith("/"):
            path = path[1:]
        return Reference(f"{self.path}/{path}", self.db)

    def to_json(self) -> dict[str, str]:
        return {"referenceValue": self.name}

    def _require(self, kind: Literal["doc", "col"], action: str) -> None:
        if kind == "doc" and not is_document_path(self.path):
            raise ValidationError(f"Can't {action} a collection", argument="path")
        if kind == "col" and not self.is_collection:
            raise ValidationError(f"{action} can only be called on collections", argument="path")

    async def get(self, **options: Any) -> Document | DocumentList:
        """Fetch the referenced document, or list the referenced collection.

        Args:
            **options: page_size, page_token, order_by, show_missing, mask

        Returns:
            A Document for document paths, a DocumentList for collections
        """
        params: dict[str, Any] = {}
        for key, value in options.items():
            if key not in _GET_OPTIONS:
                raise ValidationError(f'Unknown option "{key}"', argument=key)
            if key == "mask":
                value = {"fieldPaths": list(value)}
            params[_GET_OPTIONS[key]] = value

        data = await self.db.fetch(self.endpoint + to_query_string(params))

        if self.is_collection:
            return DocumentList(data, self, options)
        return Document(data, self.db)

    async def set(self, data: Mapping[str, Any]) -> Document:
        """Create or overwrite the referenced document.

        On a collection reference a new document with a server assigned ID
        is created.
        """
        if not isinstance(data, Mapping):
            raise ValidationError('"set" received no data', argument="data")
        if self.is_root:
            raise ValidationError("Can't set the root of the database", argument="path")

        transforms: list[Any] = []
        body = encode(data, transforms)

        if transforms:
            if self.is_collection:
                raise ValidationError(
                    "Transforms can't be used when creating documents with server generated IDs",
                    argument="data",
                )
            tx = self.db.transaction()
            tx.set(self, data)
            return await self._commit_and_get(tx)

        raw = await self.db.fetch(
            self.endpoint,
            method="POST" if self.is_collection else "PATCH",
            body=body,
        )
        return Document(raw, self.db)

    async def update(self, data: Mapping[str, Any], exists_optional: bool = False) -> Document:
        """Update the fields present in ``data``.

        Args:
            data: Fields to write, nested mappings update nested fields
            exists_optional: Create the document if it doesn't exist
        """
        self._require("doc", "update")
        if not isinstance(data, Mapping) or not data:
            raise ValidationError('"update" received no data', argument="data")

        transforms: list[Any] = []
        body = encode(data, transforms)

        if transforms:
            tx = self.db.transaction()
            tx.update(self, data, exists_optional=exists_optional)
            return await self._commit_and_get(tx)

        params: dict[str, Any] = {"updateMask": {"fieldPaths": key_paths(data)}}
        if not exists_optional:
            params["currentDocument"] = {"exists": True}

        raw = await self.db.fetch(
            self.endpoint + to_query_string(params),
            method="PATCH",
            body=body,
        )
        return Document(raw, self.db)

    async def _commit_and_get(self, tx: Any) -> Document:
        logger.debug(f"Writing {self.path} with transforms in a transaction")
        await tx.commit()
        return await self.get()

    async def delete(self) -> None:
        """Delete the referenced document."""
        self._require("doc", "delete")
        await self.db.fetch(self.endpoint, method="DELETE")

    def query(self, **options: Any) -> Query:
        """Build a query over the documents of this collection."""
        from .query import Query

        self._require("col", "query")
        return Query(self, **options)


def path_from_ref(ref: Reference | Document | str) -> str:
    """Return the relative path of a Reference, Document or path string."""
    if isinstance(ref, Document):
        return ref.meta.path
    if isinstance(ref, Reference):
        return ref.path
    if isinstance(ref, str):
        return trim_path(ref)
    raise ValidationError(
        "Expected a Reference, Document or a path but got something else",
        argument="ref",
    )


def restrict_to(kind: Literal["doc", "col"], ref: Reference | Document | str) -> str:
    """Return the path of ``ref``, rejecting the wrong kind of node.

    Raises:
        ValidationError: If a collection was given where a document is
            required, or the other way around
    """
    path = path_from_ref(ref)
    is_doc = kind == "doc"
    valid = is_document_path(path) if is_doc else is_collection_path(path)
    if not valid:
        raise ValidationError(
            "You are trying to access a method reserved for "
            f"{'Documents' if is_doc else 'Collections'} with a "
            f"{'Collection' if is_doc else 'Document'}",
            argument="ref",
        )
    return path
