"""
Database entry point.

A Database knows where the REST API lives, performs requests through a
fetch coroutine (httpx by default) and hands out References, batch reads
and Transactions.

Example:
    >>> async with Database("my-project") as db:
    ...     doc = await db.ref("users/alice").get()
    ...
    ...     async def transfer(tx):
    ...         [a, b] = await tx.get(["accounts/a", "accounts/b"])
    ...         tx.update(a, {"balance": a["balance"] - 10})
    ...         tx.update(b, {"balance": b["balance"] + 10})
    ...
    ...     await db.run_transaction(transfer)

Invariants:
    - run_transaction only retries on NOT_FOUND and FAILED_PRECONDITION
    - Each attempt runs the update function on a fresh Transaction
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Mapping, Sequence

import httpx

from ._http_client import Fetch, HttpClient
from .config import DEFAULT_DATABASE, DEFAULT_HOST, Settings
from .document import Document, MissingDocument
from .errors import RETRYABLE_STATUSES, ValidationError
from .reference import Reference, restrict_to
from .transaction import Transaction
from .utils import generate_id

logger = logging.getLogger(__name__)

UpdateFunction = Callable[[Transaction], Any]


class Database:
    """Handle to one Firestore database.

    Attributes:
        project_id: Google Cloud project ID
        name: Database name
        root_path: Resource name prefix of every document
        endpoint: REST endpoint of the root path
        max_attempts: Default commit attempts for run_transaction
        id_generator: Produces IDs for documents created with Transaction.add
    """

    def __init__(
        self,
        project_id: str,
        *,
        database: str = DEFAULT_DATABASE,
        host: str = DEFAULT_HOST,
        ssl: bool = True,
        fetch: Fetch | None = None,
        auth: httpx.Auth | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        max_attempts: int = 5,
        id_generator: Callable[[], str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the database handle.

        Args:
            project_id: Google Cloud project ID
            database: Database name
            host: REST API host, e.g. ``localhost:8080`` for the emulator
            ssl: Use HTTPS
            fetch: Custom request coroutine; replaces the httpx client
            auth: httpx authentication flow for the default client
            headers: Extra headers for the default client
            timeout: Request timeout for the default client
            max_attempts: Default commit attempts for run_transaction
            id_generator: Document ID factory for Transaction.add
            transport: Custom httpx transport for the default client
        """
        if not isinstance(project_id, str) or not project_id:
            raise ValidationError(
                'Database expected a valid "project_id" argument',
                argument="project_id",
            )

        self.project_id = project_id
        self.name = database
        self.root_path = f"projects/{project_id}/databases/{database}/documents"
        self.endpoint = f"http{'s' if ssl else ''}://{host}/v1/{self.root_path}"
        self.max_attempts = max_attempts
        self.id_generator = id_generator or generate_id

        self._fetch = fetch
        self._http: HttpClient | None = None
        if fetch is None:
            self._http = HttpClient(
                timeout=timeout,
                headers=headers,
                auth=auth,
                transport=transport,
            )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> Database:
        """Create a database from environment settings.

        Args:
            settings: Settings to use, loaded from the environment if None
            **kwargs: Extra constructor arguments (fetch, auth, ...)
        """
        settings = settings or Settings()
        return cls(
            settings.project_id,
            database=settings.database,
            host=settings.effective_host,
            ssl=settings.use_ssl,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"Database({self.root_path!r})"

    async def fetch(self, url: str, *, method: str = "GET", body: Any = None) -> Any:
        """Perform a request and return the parsed JSON response."""
        if self._fetch is not None:
            return await self._fetch(url, method=method, body=body)
        return await self._http.fetch(url, method=method, body=body)

    async def close(self) -> None:
        """Close the default HTTP client."""
        if self._http is not None:
            await self._http.close()

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def ref(self, path: str | Document) -> Reference:
        """Reference to a document or collection path."""
        if isinstance(path, Document):
            path = path.meta.path
        return Reference(path, self)

    def collection(self, path: str) -> Reference:
        """Reference to a collection; rejects document paths."""
        return Reference(restrict_to("col", path), self)

    def document(self, path: str) -> Reference:
        """Reference to a document; rejects collection paths."""
        return Reference(restrict_to("doc", path), self)

    async def batch_get(
        self,
        refs: Sequence[Reference | Document | str],
    ) -> list[Document | MissingDocument]:
        """Read several documents in one request.

        Returns:
            One Document or MissingDocument per requested document, in the
            order the server reports them
        """
        names = [f"{self.root_path}/{restrict_to('doc', ref)}" for ref in refs]
        if not names:
            return []

        logger.debug(f"Batch reading {len(names)} documents")
        response = await self.fetch(
            self.endpoint + ":batchGet",
            method="POST",
            body={"documents": names},
        )

        results: list[Document | MissingDocument] = []
        for entry in response or []:
            if entry.get("found"):
                results.append(Document(entry["found"], self))
            elif entry.get("missing"):
                results.append(MissingDocument.from_name(entry["missing"], self))
        return results

    def transaction(self) -> Transaction:
        """Start a new transaction."""
        return Transaction(self)

    async def run_transaction(
        self,
        update_function: UpdateFunction,
        attempts: int | None = None,
    ) -> Any:
        """Run ``update_function`` in a transaction, retrying on conflicts.

        The function receives a fresh Transaction on every attempt and may be
        a plain function or a coroutine function. If the commit fails because
        a document read in the transaction changed (or vanished), the whole
        function is run again.

        A commit error is retried when its ``status`` attribute is NOT_FOUND
        or FAILED_PRECONDITION. This covers ApiError and errors raised by a
        custom fetch. Errors raised by the function itself are not retried.

        Args:
            update_function: Reads and queues writes on the transaction
            attempts: Maximum number of attempts, defaults to max_attempts

        Returns:
            Whatever the update function returned on the successful attempt

        Raises:
            ApiError: The last conflict error once all attempts failed (or the
                custom fetch error carrying that status)
        """
        attempts = self.max_attempts if attempts is None else attempts
        if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 1:
            raise ValidationError("attempts must be a positive integer", argument="attempts")

        for attempt in range(1, attempts + 1):
            tx = self.transaction()

            result = update_function(tx)
            if inspect.isawaitable(result):
                result = await result

            try:
                await tx.commit()
            except Exception as e:
                # Custom fetch implementations may raise their own errors with a status
                status = getattr(e, "status", None)
                if status not in RETRYABLE_STATUSES:
                    raise
                if attempt == attempts:
                    logger.warning(f"Transaction failed after {attempts} attempts: {status}")
                    raise
                logger.info(f"Transaction attempt {attempt}/{attempts} failed with {status}, retrying")
                continue

            return result
