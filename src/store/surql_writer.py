"""SurrealQL statement rendering and file sink.

This module renders entity batches as SurrealQL import statements and
writes them to a ``.surql`` file, one transaction per batch.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
import math
from pathlib import Path
import re

from core.types import Batch, Entity, ForeignKey
from store.sink import BatchSink
from store.text_file import RollbackTextFile

_IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SURQL_ESCAPES = (
    ("\\", "\\\\"),
    ("'", "\\'"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\f", "\\f"),
)


def escape_surql_string(text: str) -> str:
    """Escape text for a single-quoted SurrealQL string literal.

    Backslashes are escaped first so later escapes are not doubled.
    """
    for raw, escaped in _SURQL_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def format_record_id(key: ForeignKey) -> str:
    """Render a foreign key as a SurrealQL record id.

    Integer ids and identifier-like string ids are written bare
    (``genre:12``, ``language:en``); anything else is wrapped in angle
    brackets (``language:⟨pt-BR⟩``).
    """
    return f"{_format_identifier(key.kind)}:{_format_id_part(key.id)}"


def format_surql_value(value: object, indent: str = "") -> str:
    """Render one field value as a SurrealQL literal."""
    if value is None:
        return "NONE"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and not math.isfinite(value):
        return "NONE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return f"'{escape_surql_string(value)}'"
    if isinstance(value, ForeignKey):
        return format_record_id(value)
    if isinstance(value, date):
        return f"<datetime>'{value.isoformat()}'"
    if isinstance(value, list):
        return "[" + ", ".join(format_surql_value(item, indent) for item in value) + "]"
    if isinstance(value, dict):
        return _format_object(value, indent)
    raise TypeError(f"Unsupported SurrealQL value type: {type(value).__name__}")


def entity_content(entity: Entity) -> dict[str, object]:
    """Return the CONTENT mapping for an entity, record id first."""
    content: dict[str, object] = {}
    if entity.entity_id is not None:
        content["id"] = entity.entity_id
    for name, value in entity.fields.items():
        if name not in content:
            content[name] = value
    return content


def render_entity_object(entity: Entity, indent: str = "  ") -> str:
    """Render one entity as a multi-line SurrealQL object literal."""
    return indent + _format_object(entity_content(entity), indent)


def render_batch_block(batch: Batch) -> str:
    """Render one batch as a self-contained transaction block.

    Args:
        batch: Non-empty batch to render.

    Returns:
        SurrealQL text ending with a blank line.
    """
    table = _format_identifier(batch.entities[0].table)
    rows = ",\n".join(render_entity_object(entity) for entity in batch.entities)
    return (
        f"-- Batch {batch.index + 1}\n"
        "BEGIN TRANSACTION;\n"
        f"LET $batch = [\n{rows}\n];\n"
        "FOR $row IN $batch {\n"
        f"  CREATE {table} CONTENT $row;\n"
        "};\n"
        "COMMIT TRANSACTION;\n\n"
    )


def render_create_statements(batch: Batch) -> str:
    """Render one batch as a transaction of per-entity CREATE statements."""
    lines = ["BEGIN TRANSACTION;"]
    for entity in batch.entities:
        table = _format_identifier(entity.table)
        lines.append(f"CREATE {table} CONTENT {_format_object(entity_content(entity), '')};")
    lines.append("COMMIT TRANSACTION;")
    return "\n".join(lines) + "\n"


def render_file_header(generated_at: datetime | None = None) -> str:
    """Render the comment header written at the top of a statement file."""
    timestamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    return (
        "-- SurrealDB import statements\n"
        f"-- Generated on {timestamp}\n"
        "-- Each batch is committed in its own transaction\n\n"
    )


class SurqlFileSink(BatchSink):
    """Write batches to a SurrealQL import file."""

    def __init__(self, output_path: str | Path, generated_at: datetime | None = None) -> None:
        self._file = RollbackTextFile(Path(output_path).expanduser().resolve())
        self._generated_at = generated_at

    @property
    def output_path(self) -> Path:
        return self._file.output_path

    def open(self) -> None:
        self._file.open()
        self._file.append(render_file_header(self._generated_at))

    def commit(self, batch: Batch) -> int:
        if not batch.entities:
            return 0
        self._file.append(render_batch_block(batch))
        return len(batch)

    def close(self) -> None:
        self._file.close()


def _format_object(mapping: dict[str, object], indent: str) -> str:
    if not mapping:
        return "{}"
    inner_indent = indent + "  "
    rows = [
        f"{inner_indent}{_format_object_key(str(key))}: "
        f"{format_surql_value(value, inner_indent)}"
        for key, value in mapping.items()
    ]
    return "{\n" + ",\n".join(rows) + f"\n{indent}}}"


def _format_object_key(key: str) -> str:
    if _IDENTIFIER_PATTERN.fullmatch(key):
        return key
    return f"'{escape_surql_string(key)}'"


def _format_identifier(name: str) -> str:
    if _IDENTIFIER_PATTERN.fullmatch(name):
        return name
    return f"⟨{_escape_bracketed(name)}⟩"


def _format_id_part(record_id: int | float | str) -> str:
    if isinstance(record_id, int):
        return str(record_id)
    if isinstance(record_id, str) and _IDENTIFIER_PATTERN.fullmatch(record_id):
        return record_id
    return f"⟨{_escape_bracketed(str(record_id))}⟩"


def _escape_bracketed(text: str) -> str:
    return text.replace("\\", "\\\\").replace("⟩", "\\⟩")
