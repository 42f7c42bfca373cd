"""
firestore-lite - Lightweight async client for the Firestore REST API.

This SDK provides a small, dependency-light interface to Firestore:
- Database handle with batch reads and retried transactions
- References to documents and collections
- Documents that track their own changes (diff / fields_mask)
- Immutable structured query builder
- Transforms (server timestamp, increment, array union/removal, ...)
- Typed value codec between Python values and the REST wire format

Example:
    >>> from firestore_lite import Database, Transform
    >>>
    >>> async with Database("my-project") as db:
    ...     users = db.collection("users")
    ...     await users.set({"name": "Alice", "visits": 0})
    ...
    ...     docs = await users.query(where=[("visits", ">=", 0)], limit=10).run()
    ...     for doc in docs:
    ...         await doc.ref.update({"visits": Transform.increment(1)})

Invariants:
    - Document paths have an even number of segments, collections odd
    - Values round-trip through encode_value / decode_value
    - Writes in a Transaction are committed atomically

Version: 1.0.0
"""

__version__ = "1.0.0"

from .config import Settings
from .database import Database
from .document import Document, DocumentMeta, MissingDocument
from .errors import (
    ApiError,
    ConnectionError,
    DecodeError,
    FirestoreLiteError,
    ValidationError,
)
from .geopoint import GeoPoint
from .listing import DocumentList
from .query import DOCUMENT_ID, Query
from .reference import Reference
from .transaction import CommitResult, Transaction
from .transform import Transform, TransformKind
from .values import ValueType, decode, decode_value, encode, encode_value

__all__ = [
    # Version
    "__version__",
    # Client
    "Database",
    "Settings",
    "Reference",
    "Transaction",
    "CommitResult",
    # Documents
    "Document",
    "DocumentMeta",
    "MissingDocument",
    "DocumentList",
    # Queries
    "Query",
    "DOCUMENT_ID",
    # Values
    "GeoPoint",
    "Transform",
    "TransformKind",
    "ValueType",
    "encode",
    "encode_value",
    "decode",
    "decode_value",
    # Errors
    "FirestoreLiteError",
    "ValidationError",
    "DecodeError",
    "ApiError",
    "ConnectionError",
]
