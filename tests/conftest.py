"""
Shared fixtures for firestore-lite tests.

The ``db`` fixture is a Database whose requests go to an AsyncMock, so
tests can set ``fetch.return_value`` / ``fetch.side_effect`` and inspect
``fetch.call_args`` without a server.
"""

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

import pytest

from sdk.firestore_lite.database import Database

PROJECT = "test-project"
ROOT = f"projects/{PROJECT}/databases/(default)/documents"
ENDPOINT = f"https://firestore.googleapis.com/v1/{ROOT}"


def raw_document(
    path: str,
    fields: Optional[Dict[str, Any]] = None,
    update_time: str = "2024-01-01T00:00:00.000000Z",
) -> Dict[str, Any]:
    """Wire form of a document as the REST API returns it."""
    doc: Dict[str, Any] = {
        "name": f"{ROOT}/{path}",
        "createTime": "2024-01-01T00:00:00.000000Z",
        "updateTime": update_time,
    }
    if fields is not None:
        doc["fields"] = fields
    return doc


@pytest.fixture
def fetch():
    """Mocked request coroutine."""
    return AsyncMock(return_value={})


@pytest.fixture
def db(fetch):
    """Database wired to the mocked fetch with deterministic IDs."""
    return Database(PROJECT, fetch=fetch, id_generator=lambda: "generatedId")
