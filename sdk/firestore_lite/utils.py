"""
Small helpers shared across the client.

- Path normalization and kind checks
- Key paths (field masks) of nested records
- Precondition and query-string encoding for write requests
- Random document IDs
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import quote

from .errors import ValidationError
from .transform import Transform

ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 20

_TIMESTAMP_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|z|[+-]\d{2}:\d{2})$"
)


def trim_path(path: str) -> str:
    """Strip surrounding spaces and a single leading/trailing slash."""
    path = path.strip()
    if path.startswith("/"):
        path = path[1:]
    if path.endswith("/"):
        path = path[:-1]
    return path


def segments(path: str) -> list[str]:
    path = trim_path(path)
    return path.split("/") if path else []


def is_document_path(path: Any) -> bool:
    """True for a non-empty path with an even number of segments."""
    if not isinstance(path, str):
        return False
    count = len(segments(path))
    return count > 0 and count % 2 == 0


def is_collection_path(path: Any) -> bool:
    """True for a path with an odd number of segments."""
    if not isinstance(path, str):
        return False
    return len(segments(path)) % 2 == 1


def is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def key_paths(record: Mapping[str, Any], parent_path: str | None = None) -> list[str]:
    """Return the dotted paths of every leaf in a nested record.

    Nested mappings are walked, lists are leaves and transforms are skipped
    since they are sent separately from the field values.
    """
    paths: list[str] = []

    for key, value in record.items():
        path = f"{parent_path}.{key}" if parent_path else key

        if isinstance(value, Transform):
            continue

        if isinstance(value, Mapping):
            paths.extend(key_paths(value, path))
            continue

        paths.append(path)

    return paths


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an RFC 3339 UTC string. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    # %Y is not zero padded below year 1000 on every platform
    return f"{value.year:04d}" + value.strftime("-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 string into an aware datetime.

    The API sends up to nanosecond precision; digits past microseconds are
    dropped.
    """
    match = _TIMESTAMP_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    base, fraction, offset = match.groups()
    fraction = (fraction or "")[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        offset = "+00:00"
    return datetime.fromisoformat(f"{base}.{fraction}{offset}")


def format_precondition_time(value: str | datetime) -> str:
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def precondition(
    exists: bool | None = None,
    update_time: str | datetime | None = None,
) -> dict[str, Any] | None:
    """Build a ``currentDocument`` precondition, or None if nothing was given."""
    if exists is not None and update_time is not None:
        raise ValidationError(
            "A precondition can use either 'exists' or 'update_time', not both",
            argument="precondition",
        )
    if exists is not None:
        if not isinstance(exists, bool):
            raise ValidationError("'exists' must be a boolean", argument="exists")
        return {"exists": exists}
    if update_time is not None:
        return {"updateTime": format_precondition_time(update_time)}
    return None


def to_query_string(params: Mapping[str, Any] | None = None, parent: str | None = None) -> str:
    """Encode nested options as a URL query string.

    Nested mappings become dotted names and lists repeat the parameter, so
    ``{"updateMask": {"fieldPaths": ["a", "b"]}}`` gives
    ``?updateMask.fieldPaths=a&updateMask.fieldPaths=b``.
    """
    parts: list[str] = []

    for key, value in (params or {}).items():
        if value is None:
            continue
        name = f"{parent}.{key}" if parent else key

        if isinstance(value, Mapping):
            nested = to_query_string(value, name)
            if nested:
                parts.append(nested)
            continue

        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            parts.append(f"{name}={quote(_query_value(item), safe='')}")

    query = "&".join(parts)
    if parent is None and query:
        return "?" + query
    return query


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def generate_id() -> str:
    """Generate a random 20 character alphanumeric document ID."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
