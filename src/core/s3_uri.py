"""S3 URI parsing helpers.

This module centralizes S3 URI parsing for input sources.
It keeps URI validation behavior consistent across the codebase.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import StitchIngestError


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 object location model."""

    bucket: str
    key: str


def parse_s3_uri(uri: str) -> S3Location:
    """Parse and validate an S3 object URI.

    Args:
        uri: URI in format ``s3://bucket/key``.

    Returns:
        Parsed bucket and key pair.

    Raises:
        StitchIngestError: If bucket or key is missing.
    """
    stripped_uri = uri.removeprefix("s3://")
    if "/" not in stripped_uri:
        _raise_uri_error(uri)
    bucket, key = stripped_uri.split("/", 1)
    if not bucket or not key or key.endswith("/"):
        _raise_uri_error(uri)
    return S3Location(bucket=bucket, key=key)


def _raise_uri_error(uri: str) -> None:
    """Raise an invalid source URI error."""
    raise StitchIngestError(
        f"Invalid S3 URI '{uri}': expected s3://bucket/key. "
        "Point the source at a single dump object."
    )
