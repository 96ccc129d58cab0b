"""Ingest orchestration for dump-to-destination runs.

This module drives scanner, decoder, batcher, and sink in input order,
keeps exact progress counters, and applies the error policy: decode
failures are skipped, structural and sink failures halt the run.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Iterator

from core.config import StitchConfig
from core.errors import (
    StitchDecodeError,
    StitchIngestError,
    StitchSinkError,
    StitchStructuralError,
)
from core.logging_config import get_logger
from core.types import Batch, EntitySchema, IngestionResult, IngestOptions, ProgressUpdate
from ingest.batcher import EntityBatcher
from ingest.decoder import decode_span
from ingest.entity_schemas import resolve_entity_schema
from ingest.input_reader import iter_source_chunks
from ingest.scanner import ObjectScanner
from store.sink import BatchSink

_LOGGER = get_logger(__name__)

ProgressObserver = Callable[[ProgressUpdate], None]


class IngestPipelineRunner:
    """Stateful runner for one scan-decode-batch-commit pass.

    At most one batch is in flight: ``commit`` runs synchronously before
    any further input is read.
    """

    def __init__(
        self,
        chunks: Iterable[str],
        sink: BatchSink,
        schema: EntitySchema,
        batch_size: int,
        progress_observer: ProgressObserver | None = None,
        stop_event: threading.Event | None = None,
        source_label: str = "<memory>",
    ) -> None:
        self._chunks: Iterator[str] = iter(chunks)
        self._sink = sink
        self._schema = schema
        self._batcher = EntityBatcher(batch_size)
        self._scanner = ObjectScanner()
        self._observer = progress_observer or _log_progress
        self._stop_event = stop_event
        self._source_label = source_label
        self._result = IngestionResult()
        self._span_count = 0

    @property
    def result(self) -> IngestionResult:
        return self._result

    def run(self) -> IngestionResult:
        """Execute the pipeline and return final counters.

        Fatal errors are attached to the result instead of raised; call
        :meth:`IngestionResult.raise_for_error` to re-raise them.
        """
        _LOGGER.info(
            "ingest_started",
            source_uri=self._source_label,
            table=self._schema.table,
            batch_size=self._batcher.batch_size,
        )
        try:
            self._sink.open()
            self._drive()
        except (StitchIngestError, StitchSinkError) as error:
            self._record_failure(error)
        finally:
            self._close_chunks()
            self._close_sink()
        _log_ingest_completion(self._source_label, self._schema.table, self._result)
        return self._result

    def _drive(self) -> None:
        try:
            self._scan_until_exhausted()
        except StitchStructuralError:
            self._dispatch_final_batch_after_failure()
            raise
        self._dispatch(self._batcher.flush())

    def _scan_until_exhausted(self) -> None:
        while True:
            if self._stop_requested():
                self._result.cancelled = True
                _LOGGER.warning(
                    "ingest_cancelled",
                    source_uri=self._source_label,
                    entities_decoded=self._result.entities_decoded,
                )
                return
            chunk = next(self._chunks, None)
            if chunk is None:
                self._scanner.finish()
                return
            for span in self._scanner.feed(chunk):
                self._accept_span(span)

    def _accept_span(self, span: str) -> None:
        self._span_count += 1
        try:
            entity = decode_span(span, self._schema)
        except StitchDecodeError as error:
            self._result.entities_skipped += 1
            _LOGGER.warning(
                "object_skipped",
                source_uri=self._source_label,
                object_position=self._span_count,
                error=str(error),
            )
            return
        self._result.entities_decoded += 1
        self._dispatch(self._batcher.push(entity))

    def _dispatch(self, batch: Batch | None) -> None:
        if batch is None:
            return
        try:
            committed_count = self._sink.commit(batch)
        except StitchSinkError:
            raise
        except Exception as error:
            raise StitchSinkError(
                f"Sink failed to commit batch {batch.index} ({len(batch)} entities): {error}. "
                "Batches committed earlier are kept; fix the destination and re-run."
            ) from error
        self._result.batches_committed += 1
        self._result.entities_committed += committed_count
        self._observer(
            ProgressUpdate(
                entities_so_far=self._result.entities_decoded,
                batches_so_far=self._result.batches_committed,
            )
        )

    def _dispatch_final_batch_after_failure(self) -> None:
        """Commit entities recovered before a structural failure."""
        try:
            self._dispatch(self._batcher.flush())
        except StitchSinkError as error:
            _LOGGER.error(
                "final_batch_commit_failed",
                source_uri=self._source_label,
                error=str(error),
            )

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def _record_failure(self, error: StitchIngestError | StitchSinkError) -> None:
        self._result.error = error
        _LOGGER.error(
            "ingest_failed",
            source_uri=self._source_label,
            error_type=type(error).__name__,
            error=str(error),
            entities_decoded=self._result.entities_decoded,
            entities_skipped=self._result.entities_skipped,
            batches_committed=self._result.batches_committed,
        )

    def _close_chunks(self) -> None:
        close = getattr(self._chunks, "close", None)
        if callable(close):
            close()

    def _close_sink(self) -> None:
        try:
            self._sink.close()
        except StitchSinkError as error:
            if self._result.error is None:
                self._record_failure(error)
            else:
                _LOGGER.error("sink_close_failed", error=str(error))


def ingest_entities(
    options: IngestOptions,
    config: StitchConfig,
    sink: BatchSink,
    progress_observer: ProgressObserver | None = None,
    stop_event: threading.Event | None = None,
) -> IngestionResult:
    """Stream a dump source into a sink in fixed-size batches.

    Args:
        options: Ingest request options.
        config: Runtime configuration.
        sink: Destination for closed batches.
        progress_observer: Optional callback invoked after each commit.
        stop_event: Optional signal that halts reading at a chunk boundary.

    Returns:
        Final ingestion counters with the terminal error, if any.

    Raises:
        StitchSchemaError: If the entity schema cannot be resolved.
        StitchConfigError: If the batch size is invalid.
    """
    schema = resolve_entity_schema(options.entity_kind, options.schema_path)
    runner = IngestPipelineRunner(
        chunks=iter_source_chunks(options.source_uri, config),
        sink=sink,
        schema=schema,
        batch_size=options.batch_size,
        progress_observer=progress_observer,
        stop_event=stop_event,
        source_label=options.source_uri,
    )
    return runner.run()


def _log_progress(update: ProgressUpdate) -> None:
    """Default progress observer."""
    _LOGGER.info(
        "batch_committed",
        entities_so_far=update.entities_so_far,
        batches_so_far=update.batches_so_far,
    )


def _log_ingest_completion(source_label: str, table: str, result: IngestionResult) -> None:
    """Log pipeline completion with contextual metadata."""
    _LOGGER.info(
        "ingest_completed",
        source_uri=source_label,
        table=table,
        entities_decoded=result.entities_decoded,
        entities_skipped=result.entities_skipped,
        batches_committed=result.batches_committed,
        entities_committed=result.entities_committed,
        cancelled=result.cancelled,
        succeeded=result.succeeded,
    )
