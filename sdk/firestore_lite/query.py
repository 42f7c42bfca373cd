"""
Structured queries.

A Query collects filters, ordering, cursors and limits for one collection
and compiles them into the ``structuredQuery`` body of the ``runQuery``
endpoint. Every builder method validates its arguments immediately and
returns a new Query; the receiver is never modified.

Example:
    >>> query = (
    ...     db.ref("users").query()
    ...     .where("age", ">=", 18)
    ...     .order_by("age", "desc")
    ...     .limit(10)
    ... )
    >>> adults = await query.run()

Invariants:
    - One filter compiles to a bare filter, several to an AND composite
    - None and NaN can only be compared with "=="
    - Any cursor adds a trailing ``__name__`` order for a total ordering
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Sequence

from .document import Document
from .errors import ValidationError
from .reference import Reference
from .utils import is_non_negative_int
from .values import encode_value

logger = logging.getLogger(__name__)

DOCUMENT_ID = "__name__"

OPERATORS = {
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "==": "EQUAL",
    "contains": "ARRAY_CONTAINS",
}

DIRECTIONS = {
    "asc": "ASCENDING",
    "ascending": "ASCENDING",
    "desc": "DESCENDING",
    "descending": "DESCENDING",
}


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


@dataclass(frozen=True)
class Filter:
    """A single ``field op value`` condition."""

    field_path: str
    op: str
    value: Any

    def to_json(self) -> dict[str, Any]:
        if self.value is None or _is_nan(self.value):
            return {
                "unaryFilter": {
                    "field": {"fieldPath": self.field_path},
                    "op": "IS_NAN" if _is_nan(self.value) else "IS_NULL",
                }
            }

        return {
            "fieldFilter": {
                "field": {"fieldPath": self.field_path},
                "op": OPERATORS[self.op],
                "value": encode_value(self.value),
            }
        }


@dataclass(frozen=True)
class Order:
    field_path: str
    direction: str = "ASCENDING"

    def to_json(self) -> dict[str, Any]:
        return {"field": {"fieldPath": self.field_path}, "direction": self.direction}


@dataclass(frozen=True, eq=False)
class Cursor:
    """A query position, from literal values or from a document.

    Attributes:
        values: Encoded literal values, one per order field
        document: Document to read the order field values from
        before: Whether the position is just before the given values
    """

    values: tuple[Any, ...] = ()
    document: Document | None = None
    before: bool = True


@dataclass(frozen=True, eq=False)
class QueryOptions:
    """Everything a Query has accumulated so far."""

    collection: Reference | None = None
    all_descendants: bool = False
    select: tuple[str, ...] = ()
    where: tuple[Filter, ...] = ()
    order_by: tuple[Order, ...] = ()
    start: Cursor | None = None
    end: Cursor | None = None
    offset: int | None = None
    limit: int | None = None


def _validate_filter(condition: Any) -> Filter:
    if not isinstance(condition, (list, tuple)) or len(condition) != 3:
        raise ValidationError("Filter missing arguments", argument="where")

    field_path, op, value = condition
    if not isinstance(field_path, str):
        raise ValidationError("Invalid field path", argument="where")
    if op not in OPERATORS:
        raise ValidationError(f'Invalid operator "{op}"', argument="where")
    if (value is None or _is_nan(value)) and op != "==":
        raise ValidationError(
            "Null and NaN can only be used with the == operator",
            argument="where",
        )

    return Filter(field_path, op, value)


def _is_filter_list(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) > 0
        and isinstance(value[0], (list, tuple))
    )


def _step(query: Query, label: str, apply: Callable[[Query], Query]) -> Query:
    # Adds the option name to errors raised while building from keyword arguments
    try:
        return apply(query)
    except ValidationError as e:
        raise ValidationError(f'Invalid argument "{label}": {e.message}', argument=label) from e


def _cursor_args(value: Any) -> tuple[Any, ...]:
    if isinstance(value, Document):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return (value,)


class Query:
    """Immutable structured query builder.

    Args:
        from_: Reference to the collection to query
        all_descendants: Also query collections with the same ID nested
            anywhere below the parent
        select: Field paths to return, leave empty for whole documents
        where: One filter triple or a list of them
        order_by: A field path, a ``{"field", "direction"}`` mapping, or a
            list of those
        start_at, start_after, end_at, end_after: A Document or a list of
            values, one per order field
        offset: Number of results to skip
        limit: Maximum number of results
    """

    def __init__(
        self,
        from_: Reference | None = None,
        *,
        all_descendants: bool = False,
        select: Sequence[str] | None = None,
        where: Any = None,
        order_by: Any = None,
        start_at: Any = None,
        start_after: Any = None,
        end_at: Any = None,
        end_after: Any = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> None:
        if from_ is None:
            raise ValidationError('"from" is required when building a new query', argument="from")

        self._options = QueryOptions()
        query = _step(self, "from", lambda q: q.from_(from_, all_descendants))

        if select is not None:
            query = _step(query, "select", lambda q: q.select(select))

        if where is not None:
            filters = where if _is_filter_list(where) else [where]
            for i, condition in enumerate(filters):
                query = _step(query, f"where[{i}]", lambda q: q.where(condition))

        if order_by is not None:
            orders = order_by if isinstance(order_by, (list, tuple)) else [order_by]
            for i, order in enumerate(orders):
                query = _step(query, f"orderBy[{i}]", lambda q: q.order_by(order))

        cursors = (
            ("startAt", start_at, Query.start_at),
            ("startAfter", start_after, Query.start_after),
            ("endAt", end_at, Query.end_at),
            ("endAfter", end_after, Query.end_after),
        )
        for label, value, method in cursors:
            if value is not None:
                query = _step(query, label, lambda q: method(q, *_cursor_args(value)))

        if offset is not None:
            query = _step(query, "offset", lambda q: q.offset(offset))
        if limit is not None:
            query = _step(query, "limit", lambda q: q.limit(limit))

        self._options = query._options

    @classmethod
    def _from_options(cls, options: QueryOptions) -> Query:
        query = cls.__new__(cls)
        query._options = options
        return query

    def _replace(self, **changes: Any) -> Query:
        return Query._from_options(replace(self._options, **changes))

    def __repr__(self) -> str:
        return f"Query({self.to_json()!r})"

    @property
    def options(self) -> QueryOptions:
        return self._options

    @property
    def collection(self) -> Reference | None:
        return self._options.collection

    # Builder steps

    def from_(self, collection: Reference, all_descendants: bool = False) -> Query:
        """Query ``collection``."""
        if not isinstance(collection, Reference) or not collection.is_collection:
            raise ValidationError("Expected a reference to a collection", argument="from")
        if not isinstance(all_descendants, bool):
            raise ValidationError(
                'Expected the "allDescendants" argument to be a boolean',
                argument="from",
            )
        return self._replace(collection=collection, all_descendants=all_descendants)

    def select(self, fields: Sequence[str]) -> Query:
        """Only return the given field paths."""
        if not isinstance(fields, (list, tuple)):
            raise ValidationError("Expected argument to be an array of field paths", argument="select")
        for i, field_path in enumerate(fields):
            if not isinstance(field_path, str):
                raise ValidationError(f"Field path at index [{i}] is not a string", argument="select")
        return self._replace(select=self._options.select + tuple(fields))

    def where(self, *condition: Any) -> Query:
        """Add filters.

        Accepts ``where("age", ">", 18)``, ``where(("age", ">", 18))`` or a
        list of such triples.
        """
        if len(condition) == 3:
            conditions = [condition]
        elif len(condition) == 1:
            conditions = list(condition[0]) if _is_filter_list(condition[0]) else [condition[0]]
        else:
            raise ValidationError("Filter missing arguments", argument="where")

        filters = tuple(_validate_filter(c) for c in conditions)
        return self._replace(where=self._options.where + filters)

    def order_by(self, order: Any, direction: str = "asc") -> Query:
        """Add an ordering by a field path.

        Accepts a field path with a direction, a ``{"field", "direction"}``
        mapping, or a list of either.
        """
        if isinstance(order, (list, tuple)):
            query = self
            for item in order:
                query = query.order_by(item, direction)
            return query

        field_path = order
        if isinstance(order, Mapping):
            field_path = order.get("field")
            direction = order.get("direction", direction)

        if not isinstance(field_path, str):
            raise ValidationError('"field" property needs to be a string', argument="orderBy")

        normalized = DIRECTIONS.get(direction.lower()) if isinstance(direction, str) else None
        if normalized is None:
            raise ValidationError('"direction" property can only be "asc" or "desc"', argument="orderBy")

        return self._replace(order_by=self._options.order_by + (Order(field_path, normalized),))

    def _cursor(self, label: str, values: tuple[Any, ...], before: bool) -> Cursor:
        if not values:
            raise ValidationError(f"{label} expects a Document or at least one value", argument=label)

        if len(values) == 1 and isinstance(values[0], Document):
            if not self._options.order_by:
                raise ValidationError(
                    f"{label} with a Document requires at least one order_by",
                    argument=label,
                )
            return Cursor(document=values[0], before=before)

        if any(isinstance(value, Document) for value in values):
            raise ValidationError(
                f"{label} expects either a single Document or plain values",
                argument=label,
            )

        return Cursor(values=tuple(encode_value(value) for value in values), before=before)

    def start_at(self, *values: Any) -> Query:
        """Start at the given position, inclusive."""
        return self._replace(start=self._cursor("startAt", values, before=True))

    def start_after(self, *values: Any) -> Query:
        """Start right after the given position."""
        return self._replace(start=self._cursor("startAfter", values, before=False))

    def end_at(self, *values: Any) -> Query:
        return self._replace(end=self._cursor("endAt", values, before=True))

    def end_after(self, *values: Any) -> Query:
        return self._replace(end=self._cursor("endAfter", values, before=False))

    def offset(self, number: int) -> Query:
        """Skip the first ``number`` results."""
        if not is_non_negative_int(number):
            raise ValidationError("Expected an integer that is greater than or equal to 0", argument="offset")
        return self._replace(offset=number)

    def limit(self, number: int) -> Query:
        """Return at most ``number`` results."""
        if not is_non_negative_int(number):
            raise ValidationError("Expected an integer that is greater than or equal to 0", argument="limit")
        return self._replace(limit=number)

    # Compilation

    def _orders(self) -> list[dict[str, Any]]:
        options = self._options
        orders = [order.to_json() for order in options.order_by]

        if (options.start or options.end) and (
            not orders or orders[-1]["field"]["fieldPath"] != DOCUMENT_ID
        ):
            orders.append(
                {
                    "field": {"fieldPath": DOCUMENT_ID},
                    "direction": orders[-1]["direction"] if orders else "ASCENDING",
                }
            )

        return orders

    def _compile_cursor(self, cursor: Cursor, orders: list[dict[str, Any]]) -> dict[str, Any]:
        if cursor.document is None:
            values = list(cursor.values)
        else:
            values = [
                _document_value(cursor.document, order["field"]["fieldPath"])
                for order in orders
            ]

        if len(values) > len(orders):
            raise ValidationError(
                f"Too many cursor values: got {len(values)} for {len(orders)} order fields",
                argument="cursor",
            )

        return {"values": values, "before": cursor.before}

    def to_json(self) -> dict[str, Any]:
        """Compile into a ``runQuery`` request body."""
        options = self._options
        query: dict[str, Any] = {}

        if options.select:
            query["select"] = {"fields": [{"fieldPath": f} for f in options.select]}

        query["from"] = [
            {
                "collectionId": options.collection.id,
                "allDescendants": options.all_descendants,
            }
        ]

        if len(options.where) == 1:
            query["where"] = options.where[0].to_json()
        elif options.where:
            query["where"] = {
                "compositeFilter": {
                    "op": "AND",
                    "filters": [f.to_json() for f in options.where],
                }
            }

        orders = self._orders()
        if orders:
            query["orderBy"] = orders
        if options.start:
            query["startAt"] = self._compile_cursor(options.start, orders)
        if options.end:
            query["endAt"] = self._compile_cursor(options.end, orders)
        if options.offset is not None:
            query["offset"] = options.offset
        if options.limit is not None:
            query["limit"] = options.limit

        return {"structuredQuery": query}

    async def run(self) -> list[Document]:
        """Run the query and return the matching documents in server order."""
        collection = self._options.collection
        db = collection.db
        body = self.to_json()

        logger.debug(f"Running query on {collection.path}")
        results = await db.fetch(
            collection.parent.endpoint + ":runQuery",
            method="POST",
            body=body,
        )

        # Entries without a document only report skipped results or read time
        return [Document(entry["document"], db) for entry in results or [] if entry.get("document")]


def _document_value(doc: Document, field_path: str) -> dict[str, Any]:
    if field_path == DOCUMENT_ID:
        return {"referenceValue": doc.meta.name}

    value: Any = doc
    for part in field_path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            raise ValidationError(
                f'The cursor document has no field "{field_path}" to order by',
                argument="cursor",
            )
        value = value[part]

    return encode_value(value)
