"""
Internal HTTP client for firestore-lite.

This module provides the low-level REST communication layer: it sends JSON
requests with httpx and turns error responses into ApiError. It is internal
to the package; users go through Database, which can also be given any
other ``fetch`` coroutine with the same signature.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Mapping, Protocol

import httpx

from .errors import ApiError, ConnectionError

logger = logging.getLogger(__name__)


class Fetch(Protocol):
    """Coroutine that performs one request and returns the parsed JSON body.

    Failures should raise ApiError, or any error with a ``status`` attribute
    holding the REST status name so run_transaction can spot conflicts.
    """

    def __call__(
        self,
        url: str,
        *,
        method: str = "GET",
        body: Any = None,
    ) -> Awaitable[Any]: ...


def error_from_response(response: httpx.Response) -> ApiError:
    """Build an ApiError from a Firestore error response.

    Errors look like ``{"error": {"code": 409, "message": ..., "status":
    "ABORTED"}}``; batch endpoints wrap them in a list.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, list) and data:
        data = data[0]

    error = data.get("error") if isinstance(data, Mapping) else None
    if not isinstance(error, Mapping):
        return ApiError(
            response.text or response.reason_phrase,
            status=None,
            http_status=response.status_code,
        )

    return ApiError(
        error.get("message", ""),
        status=error.get("status"),
        http_status=error.get("code", response.status_code),
    )


class HttpClient:
    """Internal httpx based transport.

    The underlying ``httpx.AsyncClient`` is created on first use and closed
    by :meth:`close`.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        auth: httpx.Auth | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            timeout: Request timeout in seconds
            headers: Extra headers sent with every request
            auth: httpx authentication flow, e.g. for bearer tokens
            transport: Custom httpx transport (used by tests)
        """
        self._timeout = timeout
        self._headers = dict(headers or {})
        self._auth = auth
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Accept": "application/json", **self._headers},
                auth=self._auth,
                transport=self._transport,
            )
        return self._client

    async def fetch(self, url: str, *, method: str = "GET", body: Any = None) -> Any:
        """Send a request and return the parsed JSON body.

        Raises:
            ApiError: If the server answers with a non-2xx status
            ConnectionError: If no response was received
        """
        client = self._ensure_client()
        logger.debug(f"{method} {url}")

        try:
            response = await client.request(method, url, json=body)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Request failed: {e}", url=url) from e

        if response.is_error:
            error = error_from_response(response)
            logger.debug(f"{method} {url} failed with {error.status}: {error.message}")
            raise error

        if not response.content:
            return {}
        return response.json()

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpClient:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
