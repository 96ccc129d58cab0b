"""JSON array file sink.

This module writes entities as a well-formed JSON array. The closing
bracket is written on close, so the file stays valid even when a run
halts after some batches were committed.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.types import Batch
from store.record_payload import ReferenceStyle, entity_to_payload
from store.sink import BatchSink
from store.text_file import RollbackTextFile


class JsonArrayFileSink(BatchSink):
    """Append each batch to one JSON array file."""

    def __init__(self, output_path: str | Path, reference_style: ReferenceStyle = "string") -> None:
        self._file = RollbackTextFile(Path(output_path).expanduser().resolve())
        self._reference_style = reference_style
        self._written_count = 0

    @property
    def output_path(self) -> Path:
        return self._file.output_path

    def open(self) -> None:
        self._file.open()
        self._written_count = 0
        self._file.append("[\n")

    def commit(self, batch: Batch) -> int:
        if not batch.entities:
            return 0
        rows = [
            json.dumps(entity_to_payload(entity, self._reference_style), ensure_ascii=False)
            for entity in batch.entities
        ]
        separator = ",\n" if self._written_count else ""
        self._file.append(separator + ",\n".join(rows))
        self._written_count += len(rows)
        return len(rows)

    def close(self) -> None:
        if not self._file.is_open:
            return
        self._file.append("\n]\n")
        self._file.close()
