"""
firestore-lite Test Suite.

This package contains:
- unit/: Unit tests (no network, mocked fetch)
- integration/: Integration tests (mocked fetch, httpx.MockTransport)
- e2e/: End-to-end tests (Firestore emulator)
"""
