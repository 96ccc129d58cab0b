"""Entity decoding and default policy.

This module parses recovered object spans and normalizes them into
typed entities. Falsy values (missing, null, zero, empty string, empty
list or object) receive the field class default.
"""

from __future__ import annotations

from datetime import date, datetime
import json
import math
import re
from typing import Any, Callable, Mapping

from core.constants import DEFAULT_DATE_VALUE, DEFAULT_NUMBER_VALUE, DEFAULT_STRING_VALUE
from core.errors import StitchDecodeError
from core.types import Entity, EntitySchema, FieldSpec, ForeignKey

_SURROGATE_ESCAPE = re.compile(r"\\u[dD][89a-fA-F]")


def decode_span(span: str, schema: EntitySchema) -> Entity:
    """Decode one object span into an entity.

    Args:
        span: Text of one balanced JSON object.
        schema: Entity schema to apply.

    Returns:
        Normalized entity.

    Raises:
        StitchDecodeError: If the span is not valid JSON or violates the schema.
    """
    try:
        payload = json.loads(span, parse_float=_parse_finite_float, parse_constant=_reject_constant)
    except json.JSONDecodeError as error:
        raise StitchDecodeError(
            f"Invalid JSON object at line {error.lineno} column {error.colno}: {error.msg}."
        ) from error
    except ValueError as error:
        raise StitchDecodeError(f"Invalid JSON object: {error}.") from error
    except RecursionError as error:
        raise StitchDecodeError("JSON object is nested too deeply to decode.") from error
    if not isinstance(payload, dict):
        raise StitchDecodeError(
            f"Expected a JSON object, got {type(payload).__name__}."
        )
    if _SURROGATE_ESCAPE.search(span):
        _require_utf8_encodable(payload)
    return decode_payload(payload, schema)


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number {text} is out of range")
    return value


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-finite number {name} is not allowed")


def _require_utf8_encodable(payload: dict[str, Any]) -> None:
    """Reject objects whose strings hold unpaired surrogate escapes."""
    try:
        json.dumps(payload, ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as error:
        raise StitchDecodeError(
            f"JSON object holds an unpaired surrogate escape at position {error.start}."
        ) from error
    except RecursionError as error:
        raise StitchDecodeError("JSON object is nested too deeply to decode.") from error


def decode_payload(payload: Mapping[str, Any], schema: EntitySchema) -> Entity:
    """Normalize an already-parsed object into an entity.

    Args:
        payload: Parsed JSON object.
        schema: Entity schema to apply.

    Returns:
        Normalized entity.

    Raises:
        StitchDecodeError: If a field value cannot be normalized.
    """
    entity_id = _decode_entity_id(payload, schema.id_key)
    fields: dict[str, object] = {}
    if schema.id_key is not None:
        fields[schema.id_key] = entity_id
    for spec in schema.fields:
        fields[spec.name] = _decode_field(payload.get(spec.source_key), spec)
    if schema.passthrough:
        declared_keys = {spec.source_key for spec in schema.fields}
        for key, value in payload.items():
            if key not in declared_keys and key not in fields:
                fields[key] = value
    return Entity(table=schema.table, entity_id=entity_id, fields=fields)


def _decode_entity_id(payload: Mapping[str, Any], id_key: str | None) -> int | float | str | None:
    """Read the required entity identifier."""
    if id_key is None:
        return None
    raw_id = payload.get(id_key)
    if raw_id is None or raw_id == "":
        raise StitchDecodeError(f"Missing required identifier field '{id_key}'.")
    if isinstance(raw_id, bool) or not isinstance(raw_id, (int, float, str)):
        raise StitchDecodeError(
            f"Identifier field '{id_key}' must be a number or string, "
            f"got {type(raw_id).__name__}."
        )
    return raw_id


def _decode_field(raw_value: object, spec: FieldSpec) -> object:
    decoder = _FIELD_DECODERS[spec.field_type]
    return decoder(raw_value, spec)


def _decode_string(raw_value: object, spec: FieldSpec) -> str:
    if not raw_value:
        return str(spec.default) if spec.default is not None else DEFAULT_STRING_VALUE
    if isinstance(raw_value, (dict, list)):
        raise StitchDecodeError(f"Field '{spec.source_key}' must be a scalar string value.")
    return str(raw_value)


def _decode_number(raw_value: object, spec: FieldSpec) -> int | float:
    if not raw_value:
        return _number_default(spec)
    if isinstance(raw_value, bool):
        raise StitchDecodeError(f"Field '{spec.source_key}' must be numeric, got a boolean.")
    if isinstance(raw_value, (int, float)):
        return _require_finite(raw_value, spec)
    if isinstance(raw_value, str):
        return _require_finite(_parse_numeric_string(raw_value, spec), spec)
    raise StitchDecodeError(
        f"Field '{spec.source_key}' must be numeric, got {type(raw_value).__name__}."
    )


def _require_finite(value: int | float, spec: FieldSpec) -> int | float:
    if isinstance(value, float) and not math.isfinite(value):
        raise StitchDecodeError(f"Field '{spec.source_key}' must be a finite number.")
    return value


def _parse_numeric_string(raw_value: str, spec: FieldSpec) -> int | float:
    text = raw_value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError as error:
        raise StitchDecodeError(
            f"Field '{spec.source_key}' must be numeric, got '{raw_value}'."
        ) from error


def _number_default(spec: FieldSpec) -> int | float:
    if isinstance(spec.default, (int, float)) and not isinstance(spec.default, bool):
        return spec.default
    return DEFAULT_NUMBER_VALUE


def _decode_date(raw_value: object, spec: FieldSpec) -> date:
    if not raw_value:
        return _date_default(spec)
    if not isinstance(raw_value, str):
        raise StitchDecodeError(f"Field '{spec.source_key}' must be an ISO date string.")
    return _parse_date(raw_value, spec.source_key)


def _date_default(spec: FieldSpec) -> date:
    if isinstance(spec.default, date):
        return spec.default
    if isinstance(spec.default, str) and spec.default:
        return _parse_date(spec.default, spec.name)
    return DEFAULT_DATE_VALUE


def _parse_date(text: str, field_name: str) -> date:
    normalized_text = text.strip()
    try:
        return date.fromisoformat(normalized_text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(normalized_text.replace("Z", "+00:00")).date()
    except ValueError as error:
        raise StitchDecodeError(
            f"Field '{field_name}' has an unparseable date '{text}'. Expected YYYY-MM-DD."
        ) from error


def _decode_reference(raw_value: object, spec: FieldSpec) -> ForeignKey | None:
    if not raw_value:
        if spec.nullable:
            return None
        return _sentinel_key(spec)
    return _normalize_reference(raw_value, spec)


def _decode_reference_list(raw_value: object, spec: FieldSpec) -> list[ForeignKey]:
    if not raw_value:
        return [_sentinel_key(spec)]
    if not isinstance(raw_value, list):
        raise StitchDecodeError(f"Field '{spec.source_key}' must be a list of references.")
    keys = [_normalize_reference(item, spec) for item in raw_value if item is not None]
    return keys or [_sentinel_key(spec)]


def _normalize_reference(raw_value: object, spec: FieldSpec) -> ForeignKey:
    """Normalize an object-with-id or a scalar into a foreign key."""
    reference_id = raw_value.get("id") if isinstance(raw_value, dict) else raw_value
    if isinstance(reference_id, bool) or not isinstance(reference_id, (int, float, str)):
        raise StitchDecodeError(
            f"Field '{spec.source_key}' holds a reference without a usable 'id'."
        )
    return ForeignKey(kind=str(spec.kind), id=reference_id)


def _sentinel_key(spec: FieldSpec) -> ForeignKey:
    return ForeignKey(kind=str(spec.kind), id=spec.default_id)


def _decode_count(raw_value: object, spec: FieldSpec) -> int:
    if not raw_value:
        return 0
    if not isinstance(raw_value, list):
        raise StitchDecodeError(f"Field '{spec.source_key}' must be a list to be counted.")
    return len(raw_value)


_FIELD_DECODERS: dict[str, Callable[[object, FieldSpec], object]] = {
    "string": _decode_string,
    "number": _decode_number,
    "date": _decode_date,
    "reference": _decode_reference,
    "reference_list": _decode_reference_list,
    "count": _decode_count,
}
