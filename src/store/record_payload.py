"""Shared JSON serialization for entity payloads.

This module centralizes entity-to-JSON conversion, including the
textual form of foreign keys. It is reused by the array-file writer,
the Lance store, and the reference fetcher.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from core.types import Entity, ForeignKey

ReferenceStyle = Literal["string", "object"]


def entity_to_payload(
    entity: Entity,
    reference_style: ReferenceStyle = "string",
) -> dict[str, object]:
    """Serialize an entity into a JSON-safe payload.

    Args:
        entity: Decoded entity.
        reference_style: ``string`` renders ``kind:id``; ``object`` renders
            ``{"kind": ..., "id": ...}``.

    Returns:
        Dictionary payload for JSON encoding, in field order.
    """
    return {
        name: value_to_payload(value, reference_style) for name, value in entity.fields.items()
    }


def value_to_payload(value: object, reference_style: ReferenceStyle = "string") -> object:
    """Serialize one field value into a JSON-safe value."""
    if isinstance(value, ForeignKey):
        return foreign_key_to_payload(value, reference_style)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return [value_to_payload(item, reference_style) for item in value]
    return value


def foreign_key_to_payload(key: ForeignKey, reference_style: ReferenceStyle) -> object:
    """Serialize a foreign key in the requested style."""
    if reference_style == "object":
        return {"kind": key.kind, "id": key.id}
    return format_foreign_key(key)


def format_foreign_key(key: ForeignKey) -> str:
    """Render a foreign key as ``kind:id`` text."""
    return f"{key.kind}:{key.id}"
