"""Unit tests for input reader module."""

from __future__ import annotations

from dataclasses import replace
import io
from pathlib import Path

import pytest

from core.config import StitchConfig
from core.errors import StitchIngestError
from ingest.input_reader import iter_source_chunks
from tests.fixture_paths import dump_fixture


class _FakeBody:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload
        self.closed = False

    def iter_chunks(self, chunk_size: int):
        for start in range(0, len(self._payload), chunk_size):
            yield self._payload[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class _DroppedConnectionBody(_FakeBody):
    def iter_chunks(self, chunk_size: int):
        yield self._payload
        raise ConnectionResetError("connection reset by peer")


class _FakeS3Client:
    def __init__(self, body: _FakeBody) -> None:
        self.body = body
        self.requests: list[tuple[str, str]] = []

    def get_object(self, Bucket: str, Key: str) -> dict[str, object]:
        self.requests.append((Bucket, Key))
        return {"Body": self.body}


def test_iter_source_chunks_reads_local_file_in_bounded_chunks() -> None:
    """Reader should yield chunks no larger than the configured size."""
    config = replace(StitchConfig.from_env(), chunk_size=32)
    source_path = dump_fixture("movies_dump.json")

    chunks = list(iter_source_chunks(str(source_path), config))

    assert all(len(chunk) <= 32 for chunk in chunks)
    assert "".join(chunks) == source_path.read_text(encoding="utf-8")


def test_iter_source_chunks_raises_for_missing_path(tmp_path: Path) -> None:
    """Reader should fail when source path is missing."""
    config = StitchConfig.from_env()
    missing_path = tmp_path / "does-not-exist.json"

    with pytest.raises(StitchIngestError):
        list(iter_source_chunks(str(missing_path), config))

    assert missing_path.exists() is False


def test_iter_source_chunks_raises_for_directory(tmp_path: Path) -> None:
    """Reader should reject directories."""
    config = StitchConfig.from_env()

    with pytest.raises(StitchIngestError):
        list(iter_source_chunks(str(tmp_path), config))


def test_iter_source_chunks_reads_stdin(monkeypatch) -> None:
    """The dash source should read from standard input."""
    monkeypatch.setattr("sys.stdin", io.StringIO('{"a": 1}\n{"b": 2}'))
    config = replace(StitchConfig.from_env(), chunk_size=4)

    chunks = list(iter_source_chunks("-", config))

    assert "".join(chunks) == '{"a": 1}\n{"b": 2}'


def test_iter_source_chunks_streams_s3_object_across_multibyte_boundaries(monkeypatch) -> None:
    """S3 reader should decode UTF-8 incrementally when bytes split a character."""
    text = '{"title": "Amélie ✨"}'
    body = _FakeBody(text.encode("utf-8"))
    fake_client = _FakeS3Client(body)
    monkeypatch.setattr("ingest.input_reader._create_s3_client", lambda config: fake_client)
    config = replace(StitchConfig.from_env(), chunk_size=3)

    chunks = list(iter_source_chunks("s3://dumps/movies/2024.json", config))

    assert "".join(chunks) == text
    assert fake_client.requests == [("dumps", "movies/2024.json")] and body.closed


def test_iter_source_chunks_rejects_invalid_s3_uri() -> None:
    """S3 URIs must name both a bucket and an object key."""
    config = StitchConfig.from_env()

    with pytest.raises(StitchIngestError):
        list(iter_source_chunks("s3://bucket-only", config))


def test_iter_source_chunks_wraps_invalid_utf8_on_stdin(monkeypatch) -> None:
    """Undecodable stdin bytes should surface as an ingest error."""
    stdin = io.TextIOWrapper(io.BytesIO(b'{"a": 1}\xff'), encoding="utf-8")
    monkeypatch.setattr("sys.stdin", stdin)
    config = StitchConfig.from_env()

    with pytest.raises(StitchIngestError, match="standard input"):
        list(iter_source_chunks("-", config))


def test_iter_source_chunks_wraps_s3_read_failures(monkeypatch) -> None:
    """A connection dropped mid-stream should surface as an ingest error."""
    body = _DroppedConnectionBody(b'{"a": 1}')
    monkeypatch.setattr(
        "ingest.input_reader._create_s3_client", lambda config: _FakeS3Client(body)
    )
    chunks = iter_source_chunks("s3://dumps/movies.json", StitchConfig.from_env())

    assert next(chunks) == '{"a": 1}'
    with pytest.raises(StitchIngestError, match="connection reset"):
        next(chunks)
    assert body.closed
