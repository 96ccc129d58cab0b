"""Reference data fetching.

This module resolves foreign keys found in ingested entities against a
remote API and commits the fetched records to a downstream sink.
Requests are issued in fixed-size concurrent windows with a delay
between windows to stay under the API rate limit.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import time
from typing import Any, Callable, Iterable, Mapping

import httpx

from core.constants import (
    DEFAULT_FETCH_WINDOW_DELAY_SECONDS,
    DEFAULT_FETCH_WINDOW_SIZE,
    DEFAULT_REFERENCE_ID,
    TMDB_API_BASE_URL,
    TMDB_HTTP_TIMEOUT_SECONDS,
    TMDB_LANGUAGE,
)
from core.errors import StitchConfigError, StitchDecodeError, StitchFetchError
from core.logging_config import get_logger
from core.types import Batch, Entity, EntitySchema, ForeignKey
from ingest.decoder import decode_payload
from ingest.entity_schemas import COLLECTION_SCHEMA
from store.sink import BatchSink

_LOGGER = get_logger(__name__)

ReferenceFetcher = Callable[[Any], Mapping[str, Any]]


class TmdbCollectionClient:
    """Minimal TMDB client for collection lookups.

    Args:
        token: TMDB API read access token.
        base_url: API base URL.
        client: Optional preconfigured ``httpx.Client``.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        token: str,
        base_url: str = TMDB_API_BASE_URL,
        client: httpx.Client | None = None,
        timeout: float = TMDB_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        if not token:
            raise StitchConfigError(
                "TMDB token is missing. Set STITCH_TMDB_TOKEN to an API read access token."
            )
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def fetch_collection(self, collection_id: Any) -> Mapping[str, Any]:
        """Fetch one collection payload.

        Raises:
            StitchFetchError: On transport errors, non-2xx statuses, or
                a response body that is not a JSON object.
        """
        url = f"{self._base_url}/collection/{collection_id}"
        try:
            response = self._client.get(
                url, params={"language": TMDB_LANGUAGE}, headers=self._headers
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as error:
            raise StitchFetchError(
                f"TMDB returned HTTP {error.response.status_code} for collection "
                f"{collection_id}. Check the token and that the collection exists."
            ) from error
        except (httpx.HTTPError, ValueError) as error:
            raise StitchFetchError(
                f"Failed to fetch collection {collection_id} from {url}: {error}. "
                "Check network access and retry."
            ) from error
        if not isinstance(payload, dict):
            raise StitchFetchError(
                f"TMDB returned a non-object payload for collection {collection_id}."
            )
        return payload

    def __call__(self, collection_id: Any) -> Mapping[str, Any]:
        return self.fetch_collection(collection_id)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class ReferenceFetchSink(BatchSink):
    """Fetch referenced records for each batch and forward them downstream.

    Each distinct reference id is fetched at most once per run. A batch
    commit forwards the decoded records as one downstream batch, or
    nothing if any fetch in it failed.

    Args:
        fetcher: Callable returning the raw payload for one reference id.
        downstream: Sink receiving the fetched entities.
        reference_field: Entity field holding the foreign key(s).
        schema: Schema used to decode fetched payloads.
        window_size: Maximum concurrent requests per window.
        window_delay: Seconds to wait between windows.
        sleep: Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        fetcher: ReferenceFetcher,
        downstream: BatchSink,
        reference_field: str = "collection",
        schema: EntitySchema = COLLECTION_SCHEMA,
        window_size: int = DEFAULT_FETCH_WINDOW_SIZE,
        window_delay: float = DEFAULT_FETCH_WINDOW_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if window_size < 1:
            raise StitchConfigError(
                f"Invalid fetch window size {window_size}. Use a positive integer."
            )
        self._fetcher = fetcher
        self._downstream = downstream
        self._reference_field = reference_field
        self._schema = schema
        self._window_size = window_size
        self._window_delay = window_delay
        self._sleep = sleep
        self._seen_ids: set[Any] = set()
        self._windows_fetched = 0
        self._forwarded_batches = 0
        self._executor: ThreadPoolExecutor | None = None

    def open(self) -> None:
        self._seen_ids = set()
        self._windows_fetched = 0
        self._forwarded_batches = 0
        self._executor = ThreadPoolExecutor(max_workers=self._window_size)
        self._downstream.open()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._downstream.close()

    def commit(self, batch: Batch) -> int:
        new_ids = [
            reference_id
            for reference_id in _unique_reference_ids(batch.entities, self._reference_field)
            if reference_id not in self._seen_ids
        ]
        if not new_ids:
            return 0
        payloads = self._fetch_windows(new_ids)
        entities = tuple(self._decode_payloads(payloads))
        committed_count = self._downstream.commit(
            Batch(index=self._forwarded_batches, entities=entities)
        )
        self._forwarded_batches += 1
        self._seen_ids.update(new_ids)
        return committed_count

    def _fetch_windows(self, reference_ids: list[Any]) -> list[Mapping[str, Any]]:
        executor = self._require_executor()
        payloads: list[Mapping[str, Any]] = []
        for start in range(0, len(reference_ids), self._window_size):
            window = reference_ids[start : start + self._window_size]
            if self._windows_fetched > 0 and self._window_delay > 0:
                self._sleep(self._window_delay)
            futures = [executor.submit(self._fetcher, reference_id) for reference_id in window]
            payloads.extend(_collect_results(futures, window))
            self._windows_fetched += 1
            _LOGGER.info(
                "reference_window_fetched",
                reference_field=self._reference_field,
                window_index=self._windows_fetched,
                window_size=len(window),
            )
        return payloads

    def _decode_payloads(self, payloads: Iterable[Mapping[str, Any]]) -> Iterable[Entity]:
        for payload in payloads:
            try:
                yield decode_payload(payload, self._schema)
            except StitchDecodeError as error:
                raise StitchFetchError(
                    f"Fetched {self._schema.table} payload could not be decoded: {error}"
                ) from error

    def _require_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            raise StitchFetchError(
                "Reference fetch sink is not open. Open the sink before committing."
            )
        return self._executor


def _collect_results(futures: list[Any], window: list[Any]) -> list[Mapping[str, Any]]:
    """Wait for one window and return payloads in request order.

    Raises:
        StitchFetchError: If any request in the window failed.
    """
    results: list[Mapping[str, Any]] = []
    failure: BaseException | None = None
    failed_id: Any = None
    for reference_id, future in zip(window, futures):
        try:
            results.append(future.result())
        except Exception as error:
            if failure is None:
                failure, failed_id = error, reference_id
    if failure is None:
        return results
    if isinstance(failure, StitchFetchError):
        raise failure
    raise StitchFetchError(
        f"Failed to fetch reference {failed_id}: {failure}. Nothing from this batch was forwarded."
    ) from failure


def _unique_reference_ids(entities: Iterable[Entity], reference_field: str) -> list[Any]:
    """Return distinct, non-sentinel reference ids in first-seen order."""
    ordered: dict[Any, None] = {}
    for entity in entities:
        for key in _reference_keys(entity.fields.get(reference_field)):
            if key.id != DEFAULT_REFERENCE_ID:
                ordered.setdefault(key.id, None)
    return list(ordered)


def _reference_keys(value: object) -> list[ForeignKey]:
    if isinstance(value, ForeignKey):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, ForeignKey)]
    return []
