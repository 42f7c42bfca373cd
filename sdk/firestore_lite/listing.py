"""Pages of documents returned by listing a collection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator, Mapping

from .document import Document
from .errors import ValidationError

if TYPE_CHECKING:
    from .reference import Reference


class DocumentList:
    """One page of a collection listing.

    Attributes:
        ref: The listed collection
        documents: Documents on this page, in server order
        next_page_token: Token of the following page, None on the last page
        options: Options the listing was requested with
    """

    def __init__(
        self,
        raw: Mapping[str, Any],
        ref: Reference,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        if ref is None:
            raise ValidationError(
                'The "reference" argument is required when creating a DocumentList',
                argument="ref",
            )
        if not ref.is_collection:
            raise ValidationError(
                "The reference in a list should point to a collection",
                argument="ref",
            )

        self.ref = ref
        self.options = dict(options or {})
        self.documents = [Document(doc, ref.db) for doc in (raw or {}).get("documents", [])]
        self.next_page_token: str | None = (raw or {}).get("nextPageToken")

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    @property
    def has_next_page(self) -> bool:
        return bool(self.next_page_token)

    async def next_page(self) -> DocumentList | None:
        """Fetch the following page with the same options, None on the last page."""
        if not self.has_next_page:
            return None
        return await self.ref.get(**{**self.options, "page_token": self.next_page_token})
