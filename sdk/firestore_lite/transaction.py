"""
Transactions.

A Transaction collects write instructions and commits them atomically in a
single request. Documents read through the transaction are remembered: a
later write to one of them is sent with a precondition on the state it was
read in, so the commit fails if another client changed it in between.

Example:
    >>> tx = db.transaction()
    >>> [account] = await tx.get(["accounts/alice"])
    >>> tx.update(account, {"balance": account["balance"] - 10})
    >>> tx.update("accounts/bob", {"balance": Transform.increment(10)})
    >>> await tx.commit()

Invariants:
    - Writes are sent in the order they were added
    - A write with transforms is followed by one transform instruction
    - Explicit preconditions win over ones recorded by reads, which win over
      the method's default
    - Recorded preconditions are cleared by commit()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from .document import Document, MissingDocument
from .errors import ValidationError
from .reference import Reference, path_from_ref, restrict_to
from .transform import Transform
from .utils import key_paths, precondition
from .values import encode

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)

Ref = Reference | Document | str


@dataclass
class CommitResult:
    """Result of committing a Transaction.

    Attributes:
        commit_time: Time the writes were applied
        write_results: One result per write instruction
    """

    commit_time: str | None = None
    write_results: list[dict[str, Any]] = field(default_factory=list)


class Transaction:
    """Atomic batch of writes with optimistic concurrency.

    Attributes:
        writes: Write instructions in commit order
        preconditions: Resource name -> precondition recorded by reads
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self.writes: list[dict[str, Any]] = []
        self.preconditions: dict[str, dict[str, Any]] = {}

    def _name(self, path: str) -> str:
        return f"{self._db.root_path}/{path}"

    def _precondition(
        self,
        name: str,
        explicit: dict[str, Any] | None,
        default: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        if explicit is not None:
            return explicit
        if name in self.preconditions:
            return dict(self.preconditions[name])
        return default

    def _write(
        self,
        ref: Ref,
        data: Mapping[str, Any] | None,
        explicit: dict[str, Any] | None,
        default: dict[str, Any] | None = None,
        with_mask: bool = False,
    ) -> None:
        if isinstance(ref, Document):
            record: Mapping[str, Any] = ref
            if data is not None and not isinstance(data, Mapping):
                raise ValidationError("The data argument should be a mapping", argument="data")
        elif isinstance(data, Mapping):
            record = data
        else:
            raise ValidationError("The data argument is missing", argument="data")

        name = self._name(path_from_ref(ref))
        transforms: list[Transform] = []
        doc = encode(record, transforms)
        doc["name"] = name

        write: dict[str, Any] = {"update": doc}

        if with_mask:
            if data is not None:
                paths = key_paths(data)
            else:
                paths = ref.fields_mask()
            write["updateMask"] = {"fieldPaths": paths}

        condition = self._precondition(name, explicit, default)
        if condition is not None:
            write["currentDocument"] = condition

        self.writes.append(write)

        if transforms:
            self.writes.append(
                {
                    "transform": {
                        "document": name,
                        "fieldTransforms": [t.to_json() for t in transforms],
                    }
                }
            )

    async def get(self, refs: Sequence[Reference | str]) -> list[Document | MissingDocument]:
        """Read documents and record their state as preconditions.

        Existing documents must still have the same update time when the
        transaction commits; missing ones must still not exist.
        """
        docs = await self._db.batch_get(refs)

        for doc in docs:
            if isinstance(doc, Document):
                self.preconditions[doc.meta.name] = {"updateTime": doc.meta.update_time}
            else:
                self.preconditions[doc.name] = {"exists": False}

        return docs

    def set(
        self,
        ref: Ref,
        data: Mapping[str, Any] | None = None,
        *,
        exists: bool | None = None,
        update_time: str | datetime | None = None,
    ) -> Transaction:
        """Create the document, or overwrite all of its fields.

        Args:
            ref: Document path, Reference, or a Document whose fields are written
            data: Fields to write (not needed when ``ref`` is a Document)
            exists: Require the document to exist (or not)
            update_time: Require the document's last update time

        Returns:
            Self for chaining
        """
        restrict_to("doc", ref)
        self._write(ref, data, precondition(exists, update_time))
        return self

    def update(
        self,
        ref: Ref,
        data: Mapping[str, Any] | None = None,
        *,
        exists: bool | None = None,
        update_time: str | datetime | None = None,
        exists_optional: bool = False,
    ) -> Transaction:
        """Write only the given fields of an existing document.

        When ``ref`` is a Document and no data is given, only the fields
        changed since it was read are written.

        Args:
            ref: Document path, Reference, or Document
            data: Fields to write, nested mappings update nested fields
            exists: Override the default ``exists: True`` precondition
            update_time: Require the document's last update time
            exists_optional: Drop the default precondition so a missing
                document is created

        Returns:
            Self for chaining
        """
        restrict_to("doc", ref)
        default = None if exists_optional else {"exists": True}
        self._write(ref, data, precondition(exists, update_time), default, with_mask=True)
        return self

    def add(
        self,
        ref: Reference | str,
        data: Mapping[str, Any],
        *,
        exists: bool | None = None,
        update_time: str | datetime | None = None,
    ) -> Reference:
        """Create a document with a generated ID in a collection.

        Returns:
            Reference to the new document
        """
        path = f"{restrict_to('col', ref)}/{self._db.id_generator()}"
        self._write(path, data, precondition(exists, update_time), {"exists": False})
        return self._db.ref(path)

    def delete(
        self,
        ref: Ref,
        *,
        exists: bool | None = None,
        update_time: str | datetime | None = None,
    ) -> Transaction:
        """Delete a document.

        Returns:
            Self for chaining
        """
        name = self._name(restrict_to("doc", ref))

        write: dict[str, Any] = {"delete": name}
        condition = self._precondition(name, precondition(exists, update_time))
        if condition is not None:
            write["currentDocument"] = condition

        self.writes.append(write)
        return self

    async def commit(self) -> CommitResult:
        """Send all writes in one atomic request.

        Raises:
            ApiError: If the commit is rejected, e.g. a precondition failed
        """
        logger.debug(f"Committing transaction with {len(self.writes)} writes")

        try:
            response = await self._db.fetch(
                self._db.endpoint + ":commit",
                method="POST",
                body={"writes": self.writes},
            )
        finally:
            self.preconditions = {}

        response = response or {}
        return CommitResult(
            commit_time=response.get("commitTime"),
            write_results=response.get("writeResults", []),
        )
