"""
E2E test fixtures for firestore-lite.

These tests require a running Firestore emulator, e.g.
``gcloud emulators firestore start --host-port=localhost:8080``.
"""

import os
import socket
import time
import uuid

import pytest
import pytest_asyncio

from sdk.firestore_lite.config import Settings
from sdk.firestore_lite.database import Database

EMULATOR_HOST = os.environ.get("FIRESTORE_EMULATOR_HOST", "localhost:8080")


def wait_for_service(host: str, port: int, timeout: int = 60) -> bool:
    """Wait for a service to become available."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            time.sleep(1)
    return False


@pytest.fixture(scope="session")
def emulator() -> str:
    """Host of the running emulator."""
    host, _, port = EMULATOR_HOST.partition(":")
    assert wait_for_service(host, int(port or 8080), timeout=30), "Emulator not ready"
    return EMULATOR_HOST


@pytest_asyncio.fixture
async def db(emulator):
    """Database on the emulator, closed after the test."""
    settings = Settings(project_id="firestore-lite-e2e", emulator_host=emulator)
    database = Database.from_settings(settings)
    yield database
    await database.close()


@pytest.fixture
def collection() -> str:
    """Unique collection name so tests don't see each other's documents."""
    return f"e2e_{uuid.uuid4().hex[:12]}"
