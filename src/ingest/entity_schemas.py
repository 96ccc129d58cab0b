"""Built-in entity schemas and schema resolution.

This module declares the movie, show, collection, and passthrough
object schemas. Custom schemas are loaded from YAML files instead.
"""

from __future__ import annotations

from core.constants import DEFAULT_LANGUAGE_CODE, EMPTY_IMAGE_PATH
from core.errors import StitchSchemaError
from core.schema_file import load_entity_schema
from core.types import EntitySchema, FieldSpec

_LANGUAGE_FIELD = FieldSpec(
    name="language",
    field_type="reference",
    source="original_language",
    kind="language",
    default_id=DEFAULT_LANGUAGE_CODE,
)
_GENRE_FIELD = FieldSpec(name="genre", field_type="reference_list", source="genres", kind="genre")
_POSTER_FIELD = FieldSpec(
    name="poster", field_type="string", source="poster_path", default=EMPTY_IMAGE_PATH
)

MOVIE_SCHEMA = EntitySchema(
    table="movie",
    fields=(
        FieldSpec(name="title", field_type="string"),
        FieldSpec(name="budget", field_type="number"),
        FieldSpec(name="overview", field_type="string"),
        _POSTER_FIELD,
        FieldSpec(name="release_date", field_type="date"),
        FieldSpec(name="revenue", field_type="number"),
        FieldSpec(name="runtime", field_type="number"),
        FieldSpec(name="tagline", field_type="string"),
        FieldSpec(name="vote_average", field_type="number"),
        _LANGUAGE_FIELD,
        _GENRE_FIELD,
        FieldSpec(
            name="collection",
            field_type="reference",
            source="belongs_to_collection",
            kind="collection",
            nullable=True,
        ),
    ),
)

SHOW_SCHEMA = EntitySchema(
    table="show",
    fields=(
        FieldSpec(name="title", field_type="string", source="original_name"),
        FieldSpec(name="overview", field_type="string"),
        _POSTER_FIELD,
        FieldSpec(name="first_air_date", field_type="date"),
        FieldSpec(name="tagline", field_type="string"),
        FieldSpec(name="vote_average", field_type="number"),
        _LANGUAGE_FIELD,
        _GENRE_FIELD,
        FieldSpec(name="seasons", field_type="count"),
    ),
)

COLLECTION_SCHEMA = EntitySchema(
    table="collection",
    fields=(
        FieldSpec(name="name", field_type="string"),
        FieldSpec(name="overview", field_type="string"),
        _POSTER_FIELD,
        FieldSpec(
            name="backdrop", field_type="string", source="backdrop_path", default=EMPTY_IMAGE_PATH
        ),
    ),
)

OBJECT_SCHEMA = EntitySchema(table="object", fields=(), id_key=None, passthrough=True)

BUILTIN_SCHEMAS: dict[str, EntitySchema] = {
    "movie": MOVIE_SCHEMA,
    "show": SHOW_SCHEMA,
    "collection": COLLECTION_SCHEMA,
    "object": OBJECT_SCHEMA,
}


def supported_entity_kinds() -> tuple[str, ...]:
    """Return built-in entity kind names."""
    return tuple(BUILTIN_SCHEMAS)


def resolve_entity_schema(entity_kind: str, schema_path: str | None = None) -> EntitySchema:
    """Resolve the schema for an ingest run.

    Args:
        entity_kind: Built-in schema name.
        schema_path: Optional YAML schema file, takes precedence.

    Returns:
        Entity schema to decode with.

    Raises:
        StitchSchemaError: If the kind is unknown or the file is invalid.
    """
    if schema_path:
        return load_entity_schema(schema_path)
    schema = BUILTIN_SCHEMAS.get(entity_kind)
    if schema is None:
        supported_rows = ", ".join(supported_entity_kinds())
        raise StitchSchemaError(
            f"Unknown entity kind '{entity_kind}'. Use one of: {supported_rows}, "
            "or pass a YAML schema file."
        )
    return schema
