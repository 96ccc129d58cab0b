"""Typed entity-schema files.

This module loads and validates YAML entity schemas so custom dump
shapes can be decoded without code changes. One strict schema format
is shared by the CLI and SDK entry points.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Sequence, cast

from core.constants import (
    DEFAULT_ID_KEY,
    DEFAULT_REFERENCE_ID,
    SCHEMA_FILE_VERSION,
    SUPPORTED_FIELD_TYPES,
)
from core.errors import StitchDependencyError, StitchSchemaError
from core.types import EntitySchema, FieldSpec, FieldType

_ROOT_KEYS = {"version", "table", "id_key", "passthrough", "fields"}
_FIELD_KEYS = {"name", "type", "source", "default", "kind", "default_id", "nullable"}
_REFERENCE_TYPES = ("reference", "reference_list")


def load_entity_schema(schema_path: str) -> EntitySchema:
    """Load and validate a YAML entity schema from disk.

    Args:
        schema_path: File path to YAML schema.

    Returns:
        Fully validated entity schema.

    Raises:
        StitchDependencyError: If PyYAML is unavailable.
        StitchSchemaError: If file is invalid or schema checks fail.
    """
    payload = _load_yaml_payload(schema_path)
    root_mapping = _expect_mapping(payload, "schema root")
    _validate_keys(root_mapping, _ROOT_KEYS, "schema root")
    _parse_version(root_mapping)
    table = _required_string(root_mapping, "table", "schema root")
    id_key = _parse_id_key(root_mapping)
    passthrough = _optional_bool(root_mapping, "passthrough", "schema root")
    fields = _parse_fields(root_mapping)
    return EntitySchema(table=table, fields=fields, id_key=id_key, passthrough=passthrough)


def _load_yaml_payload(schema_path: str) -> object:
    try:
        import yaml
    except ImportError as error:  # pragma: no cover - dependency failure
        raise StitchDependencyError(
            "YAML entity schemas require PyYAML. Install with 'pip install pyyaml'."
        ) from error
    schema_file = Path(schema_path).expanduser().resolve()
    if not schema_file.exists():
        raise StitchSchemaError(
            f"Schema file does not exist at {schema_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(schema_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise StitchSchemaError(
            f"Failed to read schema at {schema_file}: {error}. Check file permissions and retry."
        ) from error
    except yaml.YAMLError as error:
        raise StitchSchemaError(
            f"Failed to parse YAML schema at {schema_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        raise StitchSchemaError(f"Schema at {schema_file} is empty. Define 'table' and 'fields'.")
    return payload


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise StitchSchemaError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise StitchSchemaError(
        f"Invalid {context}: expected object mapping, got {type(value).__name__}."
    )


def _expect_sequence(value: object, context: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise StitchSchemaError(f"Invalid {context}: expected list, got {type(value).__name__}.")


def _parse_version(root_mapping: Mapping[str, object]) -> None:
    raw_version = root_mapping.get("version")
    if not isinstance(raw_version, int) or isinstance(raw_version, bool):
        raise StitchSchemaError(
            f"Schema field 'version' must be an integer. Set version: {SCHEMA_FILE_VERSION}."
        )
    if raw_version != SCHEMA_FILE_VERSION:
        raise StitchSchemaError(
            f"Unsupported schema version {raw_version}. Use version: {SCHEMA_FILE_VERSION}."
        )


def _parse_id_key(root_mapping: Mapping[str, object]) -> str | None:
    if "id_key" not in root_mapping:
        return DEFAULT_ID_KEY
    raw_id_key = root_mapping["id_key"]
    if raw_id_key is None:
        return None
    if isinstance(raw_id_key, str) and raw_id_key.strip():
        return raw_id_key.strip()
    raise StitchSchemaError("Schema field 'id_key' must be a non-empty string or null.")


def _parse_fields(root_mapping: Mapping[str, object]) -> tuple[FieldSpec, ...]:
    raw_fields = root_mapping.get("fields")
    if raw_fields is None:
        return ()
    field_rows = _expect_sequence(raw_fields, "schema fields")
    parsed_fields = [_parse_field(row, index) for index, row in enumerate(field_rows)]
    names = [spec.name for spec in parsed_fields]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise StitchSchemaError(f"Schema declares duplicate fields: {', '.join(duplicates)}.")
    return tuple(parsed_fields)


def _parse_field(field_value: object, field_index: int) -> FieldSpec:
    context = f"schema field #{field_index + 1}"
    field_mapping = _expect_mapping(field_value, context)
    _validate_keys(field_mapping, _FIELD_KEYS, context)
    name = _required_string(field_mapping, "name", context)
    field_type = _parse_field_type(field_mapping, context)
    kind = _optional_string(field_mapping, "kind", context)
    if field_type in _REFERENCE_TYPES and kind is None:
        raise StitchSchemaError(f"Invalid {context}: reference fields require 'kind'.")
    return FieldSpec(
        name=name,
        field_type=field_type,
        source=_optional_string(field_mapping, "source", context),
        default=field_mapping.get("default"),
        kind=kind,
        default_id=_parse_default_id(field_mapping, context),
        nullable=_optional_bool(field_mapping, "nullable", context),
    )


def _parse_field_type(field_mapping: Mapping[str, object], context: str) -> FieldType:
    raw_type = _required_string(field_mapping, "type", context)
    if raw_type in SUPPORTED_FIELD_TYPES:
        return cast(FieldType, raw_type)
    supported_rows = ", ".join(SUPPORTED_FIELD_TYPES)
    raise StitchSchemaError(
        f"Unsupported field type '{raw_type}' in {context}. Use one of: {supported_rows}."
    )


def _parse_default_id(field_mapping: Mapping[str, object], context: str) -> int | str:
    raw_default_id = field_mapping.get("default_id", DEFAULT_REFERENCE_ID)
    if isinstance(raw_default_id, bool) or not isinstance(raw_default_id, (int, str)):
        raise StitchSchemaError(f"Invalid {context}: 'default_id' must be an integer or string.")
    return raw_default_id


def _required_string(mapping: Mapping[str, object], field_name: str, context: str) -> str:
    value = _optional_string(mapping, field_name, context)
    if value is None:
        raise StitchSchemaError(f"Invalid {context}: missing required field '{field_name}'.")
    return value


def _optional_string(mapping: Mapping[str, object], field_name: str, context: str) -> str | None:
    raw_value = mapping.get(field_name)
    if raw_value is None:
        return None
    if isinstance(raw_value, str):
        normalized_value = raw_value.strip()
        return normalized_value if normalized_value else None
    raise StitchSchemaError(f"Invalid {context}: field '{field_name}' must be a string.")


def _optional_bool(mapping: Mapping[str, object], field_name: str, context: str) -> bool:
    raw_value = mapping.get(field_name, False)
    if isinstance(raw_value, bool):
        return raw_value
    raise StitchSchemaError(f"Invalid {context}: field '{field_name}' must be true or false.")


def _validate_keys(mapping: Mapping[str, object], allowed_keys: set[str], context: str) -> None:
    unknown_keys = sorted(set(mapping) - allowed_keys)
    if unknown_keys:
        raise StitchSchemaError(f"Invalid {context}: unknown fields {', '.join(unknown_keys)}.")
