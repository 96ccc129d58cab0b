"""Shared typed models.

This module defines the data models passed between scanner, decoder,
batcher, sinks, and the SDK to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ENTITY_KIND,
    DEFAULT_ID_KEY,
    DEFAULT_REFERENCE_ID,
)
from core.errors import StitchError

FieldType = Literal["string", "number", "date", "reference", "reference_list", "count"]


@dataclass(frozen=True)
class ForeignKey:
    """Normalized reference to another entity.

    Attributes:
        kind: Referenced table name, e.g. ``genre``.
        id: Referenced record identifier.
    """

    kind: str
    id: int | float | str


@dataclass(frozen=True)
class FieldSpec:
    """One declared entity field and its default policy.

    Attributes:
        name: Field name on the decoded entity.
        field_type: Field class controlling normalization and defaults.
        source: Input key to read, defaults to ``name``.
        default: Override for the field class default value.
        kind: Referenced table for reference fields.
        default_id: Sentinel id used when a reference is missing.
        nullable: Missing single references decode to ``None``.
    """

    name: str
    field_type: FieldType
    source: str | None = None
    default: object = None
    kind: str | None = None
    default_id: int | str = DEFAULT_REFERENCE_ID
    nullable: bool = False

    @property
    def source_key(self) -> str:
        """Return the input key this field is read from."""
        return self.source or self.name


@dataclass(frozen=True)
class EntitySchema:
    """Fixed schema applied to every decoded object.

    Attributes:
        table: Destination table name for decoded entities.
        fields: Ordered declared fields.
        id_key: Required identifier key, or ``None`` for id-less entities.
        passthrough: Copy undeclared input keys verbatim into the entity.
    """

    table: str
    fields: tuple[FieldSpec, ...]
    id_key: str | None = DEFAULT_ID_KEY
    passthrough: bool = False


@dataclass(frozen=True)
class Entity:
    """Decoded, defaulted domain record.

    Attributes:
        table: Destination table name.
        entity_id: Record identifier, ``None`` for id-less schemas.
        fields: Normalized field values in schema order.
    """

    table: str
    entity_id: int | float | str | None
    fields: Mapping[str, object]


@dataclass(frozen=True)
class Batch:
    """Closed, ordered group of entities dispatched to a sink.

    Attributes:
        index: Zero-based, monotonically increasing batch index.
        entities: Entities in arrival order.
    """

    index: int
    entities: tuple[Entity, ...]

    def __len__(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class ProgressUpdate:
    """Progress notification emitted after each committed batch."""

    entities_so_far: int
    batches_so_far: int


@dataclass(frozen=True)
class IngestOptions:
    """Ingest request options.

    Attributes:
        source_uri: Input file path, ``-`` for stdin, or ``s3://`` object URI.
        entity_kind: Built-in schema name used when no schema file is given.
        batch_size: Number of entities per committed batch.
        schema_path: Optional YAML entity schema file.
    """

    source_uri: str
    entity_kind: str = DEFAULT_ENTITY_KIND
    batch_size: int = DEFAULT_BATCH_SIZE
    schema_path: str | None = None


@dataclass
class IngestionResult:
    """Running counters for one pipeline run.

    Attributes:
        entities_decoded: Objects decoded into entities.
        entities_skipped: Objects skipped after a decode failure.
        batches_committed: Batches accepted by the sink.
        entities_committed: Entities the sink reported as committed.
        cancelled: Whether a stop signal ended the run early.
        error: Terminal error, if the run halted on a fatal failure.
    """

    entities_decoded: int = 0
    entities_skipped: int = 0
    batches_committed: int = 0
    entities_committed: int = 0
    cancelled: bool = False
    error: StitchError | None = None

    @property
    def succeeded(self) -> bool:
        """Return whether the run finished without a fatal error."""
        return self.error is None

    def raise_for_error(self) -> None:
        """Re-raise the terminal error, if any."""
        if self.error is not None:
            raise self.error
