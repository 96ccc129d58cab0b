"""Runtime configuration model for Stitch.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DATA_ROOT,
    DEFAULT_FETCH_WINDOW_DELAY_SECONDS,
    DEFAULT_FETCH_WINDOW_SIZE,
    DEFAULT_SURREAL_DATABASE,
    DEFAULT_SURREAL_NAMESPACE,
    DEFAULT_SURREAL_PASSWORD,
    DEFAULT_SURREAL_URL,
    DEFAULT_SURREAL_USERNAME,
)
from core.errors import StitchConfigError


@dataclass(frozen=True)
class StitchConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for Lance datasets.
        batch_size: Default number of entities per committed batch.
        chunk_size: Maximum characters per input read.
        s3_region: Optional default AWS region for S3 sources.
        s3_profile: Optional AWS profile for boto3 session initialization.
        surreal_url: Base URL of the SurrealDB HTTP endpoint.
        surreal_namespace: SurrealDB namespace for pushed records.
        surreal_database: SurrealDB database for pushed records.
        surreal_username: SurrealDB root or namespace user.
        surreal_password: Password for ``surreal_username``.
        tmdb_token: Optional TMDB API read-access bearer token.
        fetch_window_size: Concurrent reference fetches per window.
        fetch_window_delay: Seconds to wait between fetch windows.
    """

    data_root: Path
    batch_size: int
    chunk_size: int
    s3_region: str | None
    s3_profile: str | None
    surreal_url: str
    surreal_namespace: str
    surreal_database: str
    surreal_username: str
    surreal_password: str
    tmdb_token: str | None
    fetch_window_size: int
    fetch_window_delay: float

    @classmethod
    def from_env(cls) -> "StitchConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            StitchConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("STITCH_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            batch_size=_parse_positive_int("STITCH_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            chunk_size=_parse_positive_int("STITCH_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            s3_region=os.getenv("STITCH_S3_REGION"),
            s3_profile=os.getenv("STITCH_S3_PROFILE"),
            surreal_url=os.getenv("STITCH_SURREAL_URL", DEFAULT_SURREAL_URL),
            surreal_namespace=os.getenv("STITCH_SURREAL_NAMESPACE", DEFAULT_SURREAL_NAMESPACE),
            surreal_database=os.getenv("STITCH_SURREAL_DATABASE", DEFAULT_SURREAL_DATABASE),
            surreal_username=os.getenv("STITCH_SURREAL_USERNAME", DEFAULT_SURREAL_USERNAME),
            surreal_password=os.getenv("STITCH_SURREAL_PASSWORD", DEFAULT_SURREAL_PASSWORD),
            tmdb_token=os.getenv("STITCH_TMDB_TOKEN"),
            fetch_window_size=_parse_positive_int(
                "STITCH_FETCH_WINDOW_SIZE", DEFAULT_FETCH_WINDOW_SIZE
            ),
            fetch_window_delay=_parse_non_negative_float(
                "STITCH_FETCH_WINDOW_DELAY", DEFAULT_FETCH_WINDOW_DELAY_SECONDS
            ),
        )


def _parse_positive_int(variable_name: str, default_value: int) -> int:
    """Parse a positive integer environment value.

    Args:
        variable_name: Environment variable to read.
        default_value: Value used when the variable is unset.

    Returns:
        Parsed integer.

    Raises:
        StitchConfigError: If value is not an integer >= 1.
    """
    raw_value = os.getenv(variable_name)
    if raw_value is None:
        return default_value
    try:
        parsed_value = int(raw_value)
    except ValueError as error:
        raise StitchConfigError(
            f"Invalid {variable_name} value: expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a positive whole number."
        ) from error
    if parsed_value < 1:
        raise StitchConfigError(
            f"Invalid {variable_name} value {parsed_value}: expected value >= 1. "
            f"Set {variable_name} to a positive whole number."
        )
    return parsed_value


def _parse_non_negative_float(variable_name: str, default_value: float) -> float:
    """Parse a non-negative float environment value.

    Raises:
        StitchConfigError: If value is not a number >= 0.
    """
    raw_value = os.getenv(variable_name)
    if raw_value is None:
        return default_value
    try:
        parsed_value = float(raw_value)
    except ValueError as error:
        raise StitchConfigError(
            f"Invalid {variable_name} value: expected number, got '{raw_value}'. "
            f"Set {variable_name} to a number of seconds."
        ) from error
    if parsed_value < 0:
        raise StitchConfigError(
            f"Invalid {variable_name} value {parsed_value}: expected value >= 0. "
            f"Set {variable_name} to a non-negative number of seconds."
        )
    return parsed_value
