"""SurrealDB HTTP sink.

This module posts each batch to the SurrealDB ``/sql`` endpoint as one
transaction. SurrealDB cancels the whole transaction when any statement
fails, so nothing from a failed batch is kept.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.config import StitchConfig
from core.constants import SURREAL_HTTP_TIMEOUT_SECONDS, SURREAL_SQL_PATH
from core.errors import StitchSinkError
from core.logging_config import get_logger
from core.types import Batch
from store.sink import BatchSink
from store.surql_writer import render_create_statements

_LOGGER = get_logger(__name__)

_ERROR_DETAIL_LIMIT = 300


class SurrealHttpSink(BatchSink):
    """Commit batches to a running SurrealDB server over HTTP.

    Args:
        url: Server base URL, e.g. ``http://localhost:8000``.
        namespace: Target namespace.
        database: Target database.
        username: Root or namespace user name.
        password: Password for ``username``.
        client: Optional preconfigured ``httpx.Client``; the sink does not
            close clients it did not create.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        url: str,
        namespace: str,
        database: str,
        username: str,
        password: str,
        client: httpx.Client | None = None,
        timeout: float = SURREAL_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._sql_url = url.rstrip("/") + SURREAL_SQL_PATH
        self._headers = {
            "Accept": "application/json",
            "Content-Type": "text/plain; charset=utf-8",
            "Surreal-NS": namespace,
            "Surreal-DB": database,
        }
        self._auth = httpx.BasicAuth(username, password)
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(
        cls, config: StitchConfig, client: httpx.Client | None = None
    ) -> "SurrealHttpSink":
        """Build a sink from runtime configuration."""
        return cls(
            url=config.surreal_url,
            namespace=config.surreal_namespace,
            database=config.surreal_database,
            username=config.surreal_username,
            password=config.surreal_password,
            client=client,
        )

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
            self._owns_client = True

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def commit(self, batch: Batch) -> int:
        if not batch.entities:
            return 0
        if self._client is None:
            raise StitchSinkError(
                f"SurrealDB sink for {self._sql_url} is not open. Open the sink before committing."
            )
        statements = render_create_statements(batch)
        try:
            response = self._client.post(
                self._sql_url,
                content=statements.encode("utf-8"),
                headers=self._headers,
                auth=self._auth,
            )
        except httpx.HTTPError as error:
            raise StitchSinkError(
                f"Failed to reach SurrealDB at {self._sql_url}: {error}. "
                "Check that the server is running and STITCH_SURREAL_URL is correct."
            ) from error
        _raise_for_response(response, batch)
        _LOGGER.debug(
            "surreal_batch_committed",
            sql_url=self._sql_url,
            batch_index=batch.index,
            row_count=len(batch),
        )
        return len(batch)


def _raise_for_response(response: httpx.Response, batch: Batch) -> None:
    """Validate a SurrealDB ``/sql`` response.

    Raises:
        StitchSinkError: On a non-2xx status, an unreadable body, or any
            statement result whose status is not ``OK``.
    """
    if response.status_code >= 400:
        raise StitchSinkError(
            f"SurrealDB rejected batch {batch.index} with HTTP {response.status_code}: "
            f"{response.text[:_ERROR_DETAIL_LIMIT]}. Check credentials, namespace and database."
        )
    try:
        payload: Any = response.json()
    except ValueError as error:
        raise StitchSinkError(
            f"SurrealDB returned a non-JSON response for batch {batch.index}: {error}. "
            "Check that STITCH_SURREAL_URL points at a SurrealDB server."
        ) from error
    if not isinstance(payload, list):
        raise StitchSinkError(
            f"SurrealDB returned an unexpected response for batch {batch.index}: "
            "expected a list of statement results."
        )
    for position, statement in enumerate(payload, 1):
        status = statement.get("status") if isinstance(statement, dict) else None
        if status != "OK":
            detail = statement.get("result") if isinstance(statement, dict) else statement
            raise StitchSinkError(
                f"SurrealDB statement {position} of batch {batch.index} failed: {detail}. "
                "The batch transaction was cancelled; fix the data or schema and re-run."
            )
