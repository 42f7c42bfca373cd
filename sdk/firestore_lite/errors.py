"""
Error types for firestore-lite.

This module defines all exception types raised by the client:
- FirestoreLiteError: Base exception
- ValidationError: Bad arguments (paths, query options, transforms)
- DecodeError: Server payload that can't be decoded
- ApiError: Structured error response from the REST API
- ConnectionError: The request never produced a response

Invariants:
    - All errors inherit from FirestoreLiteError
    - Only ApiError with a conflict status is retryable
    - Errors include context for debugging
"""

from __future__ import annotations

from typing import Any, Dict, Optional

# Statuses that mean "the data changed under us", the only ones a
# transaction may retry on.
RETRYABLE_STATUSES = frozenset({"NOT_FOUND", "FAILED_PRECONDITION"})


class FirestoreLiteError(Exception):
    """Base exception for all firestore-lite errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "FIRESTORE_LITE_ERROR"
        self.details = details or {}


class ValidationError(FirestoreLiteError):
    """An argument failed validation.

    Raised when:
    - A path is not a string or points to the wrong kind of node
    - A query option is malformed
    - A transform operand has the wrong type
    """

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"argument": argument},
        )
        self.argument = argument


class DecodeError(FirestoreLiteError):
    """A payload received from the server could not be decoded.

    Raised when:
    - A typed value carries an unknown type tag
    - A document is missing name, createTime or updateTime
    """

    def __init__(
        self,
        message: str,
        value_type: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="DECODE_ERROR",
            details={"value_type": value_type},
        )
        self.value_type = value_type


class ApiError(FirestoreLiteError):
    """The REST API answered with an error.

    Attributes:
        status: Canonical status string, e.g. ``FAILED_PRECONDITION``
        http_status: HTTP status code of the response
    """

    def __init__(
        self,
        message: str,
        status: Optional[str] = None,
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="API_ERROR",
            details={"status": status, "http_status": http_status},
        )
        self.status = status
        self.http_status = http_status

    @property
    def is_retryable(self) -> bool:
        """True when a transaction may be retried after this error."""
        return self.status in RETRYABLE_STATUSES


class ConnectionError(FirestoreLiteError):
    """Failed to reach the server.

    Raised when:
    - The host is unreachable
    - The request times out
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"url": url},
        )
        self.url = url
