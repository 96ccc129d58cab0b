"""Lance dataset sink.

This module appends entity batches to an Apache Lance dataset under the
data root. Every ``lance.write_dataset`` call commits a new dataset
version, so a batch is either fully visible or not at all.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from core.constants import DATASETS_DIR_NAME, LANCE_DIR_NAME
from core.errors import StitchDependencyError, StitchSinkError
from core.logging_config import get_logger
from core.types import Batch, Entity, EntitySchema, FieldSpec, ForeignKey
from store.record_payload import entity_to_payload, format_foreign_key
from store.sink import BatchSink

_LOGGER = get_logger(__name__)

ID_COLUMN = "id"
EXTRA_FIELDS_COLUMN = "extra_fields"


def resolve_lance_uri(data_root: Path, dataset_name: str) -> Path:
    """Return the Lance directory path for a named dataset."""
    return data_root / DATASETS_DIR_NAME / dataset_name / LANCE_DIR_NAME


def read_store_row_count(data_root: Path, dataset_name: str) -> int:
    """Count rows currently committed to a Lance dataset.

    Raises:
        StitchSinkError: If the dataset does not exist or cannot be opened.
    """
    lance, _ = _import_lance_stack()
    lance_uri = resolve_lance_uri(data_root, dataset_name)
    if not lance_uri.exists():
        raise StitchSinkError(
            f"Dataset '{dataset_name}' not found at {lance_uri}. Run load first."
        )
    try:
        return int(lance.dataset(str(lance_uri)).count_rows())
    except Exception as error:
        raise StitchSinkError(
            f"Failed to open Lance dataset at {lance_uri}: {error}. "
            "Validate lance/pyarrow compatibility."
        ) from error


class LanceBatchSink(BatchSink):
    """Append each committed batch as one Lance dataset version.

    Args:
        data_root: Root directory holding ``datasets/``.
        dataset_name: Dataset directory name.
        schema: Entity schema used to derive the Arrow table schema.
        overwrite: Replace an existing dataset on the first commit.
    """

    def __init__(
        self,
        data_root: Path,
        dataset_name: str,
        schema: EntitySchema,
        overwrite: bool = False,
    ) -> None:
        self._lance_uri = resolve_lance_uri(data_root, dataset_name)
        self._schema = schema
        self._overwrite = overwrite
        self._lance: Any = None
        self._arrow: Any = None
        self._arrow_schema: Any = None
        self._versions_written = 0

    @property
    def lance_uri(self) -> Path:
        return self._lance_uri

    def open(self) -> None:
        self._lance, self._arrow = _import_lance_stack()
        self._arrow_schema = build_arrow_schema(self._schema, self._arrow)
        self._versions_written = 0
        try:
            self._lance_uri.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise StitchSinkError(
                f"Failed to create dataset directory {self._lance_uri.parent}: {error}. "
                "Check write permissions for the data root."
            ) from error

    def commit(self, batch: Batch) -> int:
        if not batch.entities:
            return 0
        if self._lance is None:
            raise StitchSinkError(
                f"Lance sink for {self._lance_uri} is not open. Open the sink before committing."
            )
        table = self._arrow.Table.from_pylist(
            [_entity_row(entity, self._schema) for entity in batch.entities],
            schema=self._arrow_schema,
        )
        mode = self._write_mode()
        try:
            self._lance.write_dataset(table, str(self._lance_uri), mode=mode)
        except Exception as error:
            raise StitchSinkError(
                f"Failed to write batch {batch.index} to Lance dataset at {self._lance_uri}: "
                f"{error}. Validate lance/pyarrow compatibility and retry."
            ) from error
        self._versions_written += 1
        _LOGGER.debug(
            "lance_batch_written",
            lance_uri=str(self._lance_uri),
            batch_index=batch.index,
            row_count=len(batch),
            mode=mode,
        )
        return len(batch)

    def _write_mode(self) -> str:
        if self._versions_written == 0:
            if self._overwrite:
                return "overwrite"
            if not self._lance_uri.exists():
                return "create"
        return "append"


def build_arrow_schema(schema: EntitySchema, arrow: Any) -> Any:
    """Derive the Arrow table schema for an entity schema."""
    columns = []
    if schema.id_key is not None:
        columns.append(arrow.field(ID_COLUMN, arrow.string(), nullable=False))
    for spec in schema.fields:
        if spec.name == ID_COLUMN:
            continue
        columns.append(arrow.field(spec.name, _arrow_type(spec, arrow)))
    if schema.passthrough:
        columns.append(arrow.field(EXTRA_FIELDS_COLUMN, arrow.string()))
    return arrow.schema(columns)


def _arrow_type(spec: FieldSpec, arrow: Any) -> Any:
    if spec.field_type == "number":
        return arrow.float64()
    if spec.field_type == "count":
        return arrow.int64()
    if spec.field_type == "date":
        return arrow.date32()
    if spec.field_type == "reference_list":
        return arrow.list_(arrow.string())
    return arrow.string()


def _entity_row(entity: Entity, schema: EntitySchema) -> dict[str, object]:
    row: dict[str, object] = {}
    if schema.id_key is not None:
        row[ID_COLUMN] = str(entity.entity_id)
    declared_names = {spec.name for spec in schema.fields}
    for spec in schema.fields:
        if spec.name == ID_COLUMN:
            continue
        row[spec.name] = _column_value(entity.fields.get(spec.name))
    if schema.passthrough:
        payload = entity_to_payload(entity)
        extras = {
            key: value
            for key, value in payload.items()
            if key not in declared_names and key != schema.id_key
        }
        row[EXTRA_FIELDS_COLUMN] = json.dumps(extras, ensure_ascii=False)
    return row


def _column_value(value: object) -> object:
    if isinstance(value, ForeignKey):
        return format_foreign_key(value)
    if isinstance(value, list):
        return [_column_value(item) for item in value]
    return value


def _import_lance_stack() -> tuple[Any, Any]:
    """Import lance and pyarrow.

    Raises:
        StitchDependencyError: If either library is missing.
    """
    try:
        import lance
        import pyarrow as pa
    except ImportError as error:
        raise StitchDependencyError(
            "Lance storage requires pylance and pyarrow, but they are not installed. "
            "Install pylance and pyarrow to load datasets."
        ) from error
    return lance, pa
