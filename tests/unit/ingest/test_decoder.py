"""Unit tests for entity decoding and default policy."""

from __future__ import annotations

from datetime import date

import pytest

from core.errors import StitchDecodeError
from core.types import EntitySchema, FieldSpec, ForeignKey
from ingest.decoder import decode_payload, decode_span
from ingest.entity_schemas import MOVIE_SCHEMA, OBJECT_SCHEMA, SHOW_SCHEMA


def test_decode_span_normalizes_full_movie() -> None:
    """A complete movie object should map onto the movie schema fields."""
    span = (
        '{"id": 862, "title": "Toy Story", "budget": 30000000, "poster_path": "/toy.jpg",'
        ' "release_date": "1995-10-30", "original_language": "en",'
        ' "genres": [{"id": 16, "name": "Animation"}, {"id": 35, "name": "Comedy"}],'
        ' "belongs_to_collection": {"id": 10194, "name": "Toy Story Collection"}}'
    )

    entity = decode_span(span, MOVIE_SCHEMA)

    assert entity.entity_id == 862
    assert entity.fields["title"] == "Toy Story"
    assert entity.fields["poster"] == "/toy.jpg"
    assert entity.fields["release_date"] == date(1995, 10, 30)
    assert entity.fields["language"] == ForeignKey(kind="language", id="en")
    assert entity.fields["genre"] == [ForeignKey("genre", 16), ForeignKey("genre", 35)]
    assert entity.fields["collection"] == ForeignKey("collection", 10194)


def test_decode_span_applies_defaults_for_missing_fields() -> None:
    """Missing optional fields should receive their field class defaults."""
    entity = decode_span('{"id": 1}', MOVIE_SCHEMA)

    assert entity.fields["title"] == ""
    assert entity.fields["budget"] == 0
    assert entity.fields["poster"] == "/empty"
    assert entity.fields["release_date"] == date(1, 1, 1)
    assert entity.fields["language"] == ForeignKey("language", "en")
    assert entity.fields["genre"] == [ForeignKey("genre", 0)]
    assert entity.fields["collection"] is None


def test_decode_span_treats_falsy_values_as_missing() -> None:
    """Null, zero, empty string and empty list should all be defaulted."""
    span = (
        '{"id": 2, "title": null, "budget": 0, "poster_path": "", "genres": [],'
        ' "original_language": null, "belongs_to_collection": {}}'
    )

    entity = decode_span(span, MOVIE_SCHEMA)

    assert entity.fields["title"] == ""
    assert entity.fields["budget"] == 0
    assert entity.fields["poster"] == "/empty"
    assert entity.fields["genre"] == [ForeignKey("genre", 0)]
    assert entity.fields["language"] == ForeignKey("language", "en")
    assert entity.fields["collection"] is None


def test_decode_span_parses_numeric_strings() -> None:
    """Numeric strings should be parsed into numbers."""
    entity = decode_span('{"id": 3, "budget": "5000000", "vote_average": "6.5"}', MOVIE_SCHEMA)

    assert entity.fields["budget"] == 5000000 and entity.fields["vote_average"] == 6.5


def test_decode_span_accepts_datetime_strings() -> None:
    """Datetime strings should be truncated to their date."""
    entity = decode_span('{"id": 4, "release_date": "2001-02-03T10:00:00Z"}', MOVIE_SCHEMA)

    assert entity.fields["release_date"] == date(2001, 2, 3)


def test_decode_span_rejects_invalid_json() -> None:
    """Malformed object text should raise a decode error."""
    with pytest.raises(StitchDecodeError):
        decode_span('{"id": 5, "title": }', MOVIE_SCHEMA)


def test_decode_span_rejects_missing_identifier() -> None:
    """Schemas with an id key should reject objects without an identifier."""
    with pytest.raises(StitchDecodeError):
        decode_span('{"title": "No id"}', MOVIE_SCHEMA)


def test_decode_span_rejects_unparseable_date() -> None:
    """A date field that is not ISO formatted should raise a decode error."""
    with pytest.raises(StitchDecodeError):
        decode_span('{"id": 6, "release_date": "not-a-date"}', MOVIE_SCHEMA)


def test_decode_span_rejects_boolean_number() -> None:
    """Booleans are not numbers for decoding purposes."""
    with pytest.raises(StitchDecodeError):
        decode_span('{"id": 7, "budget": true}', MOVIE_SCHEMA)


def test_decode_span_rejects_non_list_references() -> None:
    """Reference list fields must hold a list."""
    with pytest.raises(StitchDecodeError):
        decode_span('{"id": 8, "genres": {"id": 1}}', MOVIE_SCHEMA)


def test_decode_span_counts_show_seasons() -> None:
    """Count fields should hold the length of the source list."""
    span = '{"id": 9, "original_name": "Show", "seasons": [{"n": 1}, {"n": 2}, {"n": 3}]}'

    entity = decode_span(span, SHOW_SCHEMA)

    assert entity.fields["title"] == "Show" and entity.fields["seasons"] == 3


def test_decode_span_object_schema_keeps_payload_verbatim() -> None:
    """The passthrough object schema should keep every key and need no identifier."""
    entity = decode_span('{"a": 1, "nested": {"b": [1, 2]}}', OBJECT_SCHEMA)

    assert entity.entity_id is None
    assert dict(entity.fields) == {"a": 1, "nested": {"b": [1, 2]}}


def test_decode_payload_uses_custom_sentinel_and_default() -> None:
    """Field-level defaults and sentinel ids should override class defaults."""
    schema = EntitySchema(
        table="person",
        fields=(
            FieldSpec(name="popularity", field_type="number", default=1.5),
            FieldSpec(
                name="department",
                field_type="reference",
                kind="department",
                default_id="unknown",
            ),
        ),
    )

    entity = decode_payload({"id": "p-1"}, schema)

    assert entity.fields["popularity"] == 1.5
    assert entity.fields["department"] == ForeignKey("department", "unknown")


def test_decode_payload_preserves_schema_field_order() -> None:
    """Entity fields should follow the id key then schema order."""
    entity = decode_payload({"id": 10, "title": "T"}, MOVIE_SCHEMA)

    assert list(entity.fields)[:3] == ["id", "title", "budget"]


def test_decode_span_rejects_excessive_nesting() -> None:
    """Objects deeper than the parser can follow should fail as decode errors."""
    depth = 100_000
    span = '{"a":' + "[" * depth + "]" * depth + "}"

    with pytest.raises(StitchDecodeError, match="nested too deeply"):
        decode_span(span, OBJECT_SCHEMA)


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e999"])
def test_decode_span_rejects_non_finite_numbers(literal: str) -> None:
    """Non-finite number literals should fail as decode errors."""
    with pytest.raises(StitchDecodeError):
        decode_span('{"id": 1, "score": ' + literal + "}", OBJECT_SCHEMA)


def test_decode_span_rejects_non_finite_numeric_strings() -> None:
    """Numeric strings that parse to NaN should not reach number fields."""
    with pytest.raises(StitchDecodeError, match="finite"):
        decode_span('{"id": 1, "vote_average": "nan"}', MOVIE_SCHEMA)


def test_decode_span_rejects_unpaired_surrogate_escape() -> None:
    """A lone surrogate escape should fail while a valid pair decodes."""
    with pytest.raises(StitchDecodeError, match="surrogate"):
        decode_span('{"title": "\\udc00 broken"}', OBJECT_SCHEMA)

    entity = decode_span('{"title": "\\ud83c\\udfac"}', OBJECT_SCHEMA)

    assert entity.fields["title"] == "\U0001f3ac"
