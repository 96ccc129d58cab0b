"""Streaming source readers for ingestion.

This module reads dump text from local files, standard input, or a
single S3 object. Text is yielded in bounded chunks with newlines kept,
so arbitrarily large dumps never sit in memory at once.
"""

from __future__ import annotations

import codecs
from pathlib import Path
import sys
from typing import Any, Iterator, TextIO

from core.config import StitchConfig
from core.constants import STDIN_SOURCE_URI
from core.errors import StitchDependencyError, StitchIngestError
from core.s3_uri import S3Location, parse_s3_uri


def iter_source_chunks(source_uri: str, config: StitchConfig) -> Iterator[str]:
    """Yield raw text chunks from a dump source.

    Args:
        source_uri: Local file path, ``-`` for stdin, or ``s3://`` object URI.
        config: Runtime configuration for chunk size and S3 session defaults.

    Yields:
        Text chunks of at most ``config.chunk_size`` characters.

    Raises:
        StitchIngestError: If the source cannot be read.
    """
    if source_uri == STDIN_SOURCE_URI:
        yield from _iter_stdin_chunks(config.chunk_size)
        return
    if source_uri.startswith("s3://"):
        yield from _iter_s3_chunks(source_uri, config)
        return
    yield from _iter_local_chunks(Path(source_uri).expanduser(), config.chunk_size)


def _iter_local_chunks(source_path: Path, chunk_size: int) -> Iterator[str]:
    """Read chunks from a local dump file.

    Raises:
        StitchIngestError: If path is missing, a directory, or unreadable.
    """
    if not source_path.exists():
        raise StitchIngestError(
            f"Failed to read source at {source_path}: path does not exist. "
            "Provide an existing dump file."
        )
    if not source_path.is_file():
        raise StitchIngestError(
            f"Failed to read source at {source_path}: expected a file, got a directory. "
            "Point the source at a single dump file."
        )
    try:
        with source_path.open("r", encoding="utf-8", newline="") as handle:
            yield from _iter_stream_chunks(handle, chunk_size)
    except (OSError, UnicodeDecodeError) as error:
        raise StitchIngestError(
            f"Failed to read source at {source_path}: {error}. "
            "Check file permissions and that the dump is UTF-8 encoded."
        ) from error


def _iter_stdin_chunks(chunk_size: int) -> Iterator[str]:
    """Read chunks from standard input.

    Raises:
        StitchIngestError: If stdin is unreadable or not valid UTF-8.
    """
    try:
        yield from _iter_stream_chunks(sys.stdin, chunk_size)
    except (OSError, UnicodeDecodeError) as error:
        raise StitchIngestError(
            f"Failed to read source from standard input: {error}. "
            "Pipe a UTF-8 encoded dump into stdin."
        ) from error


def _iter_stream_chunks(stream: TextIO, chunk_size: int) -> Iterator[str]:
    """Read fixed-size chunks from an open text stream."""
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            return
        yield chunk


def _iter_s3_chunks(source_uri: str, config: StitchConfig) -> Iterator[str]:
    """Stream chunks from one S3 object.

    Raises:
        StitchIngestError: If the object cannot be fetched or decoded.
    """
    location = parse_s3_uri(source_uri)
    s3_client = _create_s3_client(config)
    body = _open_s3_body(s3_client, location)
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        for raw_chunk in body.iter_chunks(chunk_size=config.chunk_size):
            text = decoder.decode(raw_chunk)
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
    except UnicodeDecodeError as error:
        raise StitchIngestError(
            f"Failed to decode {source_uri} as UTF-8: {error}. "
            "Re-export the dump with UTF-8 encoding."
        ) from error
    except Exception as error:
        raise StitchIngestError(
            f"Failed while reading {source_uri}: {error}. "
            "Check network connectivity and re-run the ingest."
        ) from error
    finally:
        body.close()
    if tail:
        yield tail


def _create_s3_client(config: StitchConfig) -> Any:
    """Create a boto3 S3 client.

    Raises:
        StitchDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise StitchDependencyError(
            "S3 support requires boto3, but it is not installed. "
            "Install boto3 to ingest from s3:// sources."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


def _open_s3_body(s3_client: Any, location: S3Location) -> Any:
    """Open the streaming body of an S3 object."""
    try:
        response = s3_client.get_object(Bucket=location.bucket, Key=location.key)
    except Exception as error:
        raise StitchIngestError(
            f"Failed to open s3://{location.bucket}/{location.key}: {error}. "
            "Check the object key and AWS credentials."
        ) from error
    return response["Body"]
