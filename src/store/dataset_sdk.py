"""Python SDK for dump ingestion.

This module exposes high-level APIs that stream a dump into each
supported destination and report the final ingestion counters.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import threading

from core.config import StitchConfig
from core.types import IngestionResult, IngestOptions
from ingest.entity_schemas import resolve_entity_schema
from ingest.pipeline import ProgressObserver, ingest_entities
from store.json_array_sink import JsonArrayFileSink
from store.lance_sink import LanceBatchSink, read_store_row_count
from store.record_payload import ReferenceStyle
from store.reference_fetch import ReferenceFetcher, ReferenceFetchSink, TmdbCollectionClient
from store.sink import BatchSink
from store.surql_writer import SurqlFileSink
from store.surreal_sink import SurrealHttpSink


class StitchClient:
    """Primary SDK entry point for ingest workflows.

    Every method returns an :class:`IngestionResult`; fatal run errors
    are attached to it rather than raised.
    """

    def __init__(self, config: StitchConfig | None = None) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
        """
        self._config = config or StitchConfig.from_env()

    @property
    def config(self) -> StitchConfig:
        return self._config

    def load_dataset(
        self,
        options: IngestOptions,
        dataset_name: str,
        overwrite: bool = False,
        progress_observer: ProgressObserver | None = None,
        stop_event: threading.Event | None = None,
    ) -> IngestionResult:
        """Ingest a dump into a Lance dataset under the data root.

        Args:
            options: Ingest options.
            dataset_name: Target dataset name.
            overwrite: Replace an existing dataset instead of appending.
            progress_observer: Optional per-batch progress callback.
            stop_event: Optional cancellation signal.

        Returns:
            Final ingestion counters.
        """
        schema = resolve_entity_schema(options.entity_kind, options.schema_path)
        sink = LanceBatchSink(self._config.data_root, dataset_name, schema, overwrite=overwrite)
        return self._run(options, sink, progress_observer, stop_event)

    def write_surql(
        self,
        options: IngestOptions,
        output_path: str,
        progress_observer: ProgressObserver | None = None,
        stop_event: threading.Event | None = None,
    ) -> IngestionResult:
        """Convert a dump into a SurrealQL import file."""
        return self._run(options, SurqlFileSink(output_path), progress_observer, stop_event)

    def push_surreal(
        self,
        options: IngestOptions,
        progress_observer: ProgressObserver | None = None,
        stop_event: threading.Event | None = None,
    ) -> IngestionResult:
        """Stream a dump into a running SurrealDB server.

        Connection settings come from the ``STITCH_SURREAL_*`` configuration.
        """
        sink = SurrealHttpSink.from_config(self._config)
        return self._run(options, sink, progress_observer, stop_event)

    def write_json_array(
        self,
        options: IngestOptions,
        output_path: str,
        reference_style: ReferenceStyle = "string",
        progress_observer: ProgressObserver | None = None,
        stop_event: threading.Event | None = None,
    ) -> IngestionResult:
        """Rewrite a dump as a well-formed JSON array file.

        With the ``object`` entity kind the original objects are kept
        verbatim, which repairs a concatenated dump into valid JSON.
        """
        sink = JsonArrayFileSink(output_path, reference_style)
        return self._run(options, sink, progress_observer, stop_event)

    def fetch_collections(
        self,
        options: IngestOptions,
        output_path: str,
        reference_field: str = "collection",
        fetcher: ReferenceFetcher | None = None,
        progress_observer: ProgressObserver | None = None,
        stop_event: threading.Event | None = None,
    ) -> IngestionResult:
        """Fetch the collections referenced by a dump into a JSON array file.

        Args:
            options: Ingest options for the referencing dump.
            output_path: JSON array file receiving collection records.
            reference_field: Entity field holding the collection reference.
            fetcher: Optional fetch callable; defaults to the TMDB client.
            progress_observer: Optional per-batch progress callback.
            stop_event: Optional cancellation signal.

        Returns:
            Final counters; ``entities_committed`` counts fetched collections.

        Raises:
            StitchConfigError: If no fetcher is given and no TMDB token is set.
        """
        tmdb_client = None
        if fetcher is None:
            tmdb_client = TmdbCollectionClient(self._config.tmdb_token or "")
            fetcher = tmdb_client
        sink = ReferenceFetchSink(
            fetcher=fetcher,
            downstream=JsonArrayFileSink(output_path),
            reference_field=reference_field,
            window_size=self._config.fetch_window_size,
            window_delay=self._config.fetch_window_delay,
        )
        try:
            return self._run(options, sink, progress_observer, stop_event)
        finally:
            if tmdb_client is not None:
                tmdb_client.close()

    def row_count(self, dataset_name: str) -> int:
        """Return the number of rows committed to a Lance dataset."""
        return read_store_row_count(self._config.data_root, dataset_name)

    def with_data_root(self, data_root: str) -> "StitchClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        updated_config = replace(self._config, data_root=resolved_root)
        return StitchClient(updated_config)

    def _run(
        self,
        options: IngestOptions,
        sink: BatchSink,
        progress_observer: ProgressObserver | None,
        stop_event: threading.Event | None,
    ) -> IngestionResult:
        return ingest_entities(
            options,
            self._config,
            sink,
            progress_observer=progress_observer,
            stop_event=stop_event,
        )
