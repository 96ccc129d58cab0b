"""Unit tests for SurrealQL rendering and the statement file sink."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import re

import pytest

from core.errors import StitchSinkError
from core.types import Batch, Entity, ForeignKey
from store.surql_writer import (
    SurqlFileSink,
    escape_surql_string,
    format_record_id,
    format_surql_value,
    render_batch_block,
    render_create_statements,
)
from tests.unit.store.sink_doubles import FlakyHandle, movie_entity


def test_escape_surql_string_escapes_special_characters() -> None:
    """Backslash, quote, and control characters should be escaped."""
    escaped = escape_surql_string("a\\b'c\nd\re\tf\fg")

    assert escaped == "a\\\\b\\'c\\nd\\re\\tf\\fg"


@pytest.mark.parametrize(
    "text",
    ["Andy's toys", "line one\nline two", "tab\there", "C:\\path\\", "it's\r\n'quoted'"],
)
def test_escape_surql_string_leaves_no_raw_breaks_or_quotes(text: str) -> None:
    """Escaped text should never contain raw newlines or unescaped quotes."""
    escaped = escape_surql_string(text)

    assert "\n" not in escaped and "\r" not in escaped and "\t" not in escaped
    assert re.search(r"(?<!\\)'", escaped) is None


def test_format_record_id_wraps_non_identifier_ids() -> None:
    """Record ids should be bare when safe and bracketed otherwise."""
    assert format_record_id(ForeignKey("genre", 12)) == "genre:12"
    assert format_record_id(ForeignKey("language", "en")) == "language:en"
    assert format_record_id(ForeignKey("language", "pt-BR")) == "language:⟨pt-BR⟩"


def test_format_surql_value_renders_literals() -> None:
    """Scalars and missing values should render as SurrealQL literals."""
    assert format_surql_value(None) == "NONE"
    assert format_surql_value(True) == "true"
    assert format_surql_value(7.5) == "7.5"
    assert format_surql_value("O'Brien") == "'O\\'Brien'"


def test_format_surql_value_renders_non_finite_numbers_as_none() -> None:
    """NaN and infinities have no SurrealQL literal and render as NONE."""
    assert format_surql_value(float("nan")) == "NONE"
    assert format_surql_value(float("-inf")) == "NONE"
    assert format_surql_value([1.5, float("inf")]) == "[1.5, NONE]"


def test_render_batch_block_wraps_batch_in_transaction() -> None:
    """A batch block should be one labelled transaction creating every row."""
    batch = Batch(index=0, entities=(movie_entity(862), movie_entity(863, "Andy's Room")))

    block = render_batch_block(batch)

    assert block.startswith("-- Batch 1\nBEGIN TRANSACTION;\nLET $batch = [\n")
    assert "  CREATE movie CONTENT $row;\n" in block
    assert block.endswith("COMMIT TRANSACTION;\n\n")
    assert "release_date: <datetime>'1995-10-30'" in block
    assert "genre: [genre:16, genre:35]" in block
    assert "collection: NONE" in block
    assert "title: 'Andy\\'s Room'" in block


def test_render_batch_block_quotes_non_identifier_object_keys() -> None:
    """Passthrough keys that are not identifiers should be quoted."""
    entity = Entity(table="object", entity_id=None, fields={"first name": "Ann", "ok": 1})

    block = render_batch_block(Batch(index=4, entities=(entity,)))

    assert "-- Batch 5" in block
    assert "'first name': 'Ann'" in block and "ok: 1" in block
    assert "id:" not in block


def test_render_create_statements_emits_one_create_per_entity() -> None:
    """Statement transactions should contain one CREATE per entity."""
    batch = Batch(index=0, entities=(movie_entity(1), movie_entity(2)))

    statements = render_create_statements(batch)

    assert statements.startswith("BEGIN TRANSACTION;\n")
    assert statements.count("CREATE movie CONTENT {") == 2
    assert statements.endswith("COMMIT TRANSACTION;\n")


def test_surql_file_sink_writes_header_and_batches(tmp_path: Path) -> None:
    """File sink should write the header and one block per batch in order."""
    output_path = tmp_path / "out" / "movies.surql"
    generated_at = datetime(2024, 1, 2, tzinfo=timezone.utc)
    sink = SurqlFileSink(output_path, generated_at=generated_at)

    with sink:
        sink.commit(Batch(index=0, entities=(movie_entity(1),)))
        sink.commit(Batch(index=1, entities=(movie_entity(2),)))
    text = output_path.read_text(encoding="utf-8")

    assert text.startswith("-- SurrealDB import statements\n-- Generated on 2024-01-02")
    assert text.index("-- Batch 1") < text.index("-- Batch 2")
    assert text.count("BEGIN TRANSACTION;") == text.count("COMMIT TRANSACTION;") == 2


def test_surql_file_sink_rolls_back_failed_batch(tmp_path: Path) -> None:
    """A failed write should truncate the file to the end of the previous batch."""
    output_path = tmp_path / "movies.surql"
    sink = SurqlFileSink(output_path)
    sink.open()
    sink.commit(Batch(index=0, entities=(movie_entity(1),)))
    text_after_first = output_path.read_text(encoding="utf-8")
    sink._file._handle = FlakyHandle(sink._file._handle)

    with pytest.raises(StitchSinkError):
        sink.commit(Batch(index=1, entities=(movie_entity(2),)))
    sink.close()

    assert output_path.read_text(encoding="utf-8") == text_after_first
