"""Integration tests for dump-to-destination workflows."""

from __future__ import annotations

from dataclasses import replace
import json
from pathlib import Path

import pytest

from core.config import StitchConfig
from core.types import IngestOptions
from ingest.scanner import scan_spans
from store.dataset_sdk import StitchClient
from tests.fixture_paths import dump_fixture


def _client(tmp_path: Path, chunk_size: int = 7) -> StitchClient:
    config = replace(
        StitchConfig.from_env(),
        data_root=tmp_path,
        chunk_size=chunk_size,
        fetch_window_delay=0.0,
    )
    return StitchClient(config)


def test_repaired_array_round_trips_original_objects(tmp_path: Path) -> None:
    """Repairing a dump should yield exactly the parsed original objects, in order."""
    source_path = dump_fixture("movies_dump.json")
    output_path = tmp_path / "repaired.json"
    options = IngestOptions(source_uri=str(source_path), entity_kind="object", batch_size=4)

    result = _client(tmp_path).write_json_array(options, str(output_path))

    expected = [json.loads(span) for span in scan_spans([source_path.read_text(encoding="utf-8")])]
    assert result.succeeded and result.batches_committed == 2
    assert json.loads(output_path.read_text(encoding="utf-8")) == expected


def test_surql_output_contains_every_decoded_movie(tmp_path: Path) -> None:
    """Statement output should hold one row per decoded movie across batches."""
    output_path = tmp_path / "movies.surql"
    options = IngestOptions(
        source_uri=str(dump_fixture("movies_dump.json")),
        batch_size=3,
    )

    result = _client(tmp_path).write_surql(options, str(output_path))

    text = output_path.read_text(encoding="utf-8")
    assert result.entities_committed == 4 and text.count("-- Batch ") == 2
    assert "language: language:⟨pt-BR⟩" in text
    assert "overview: 'A \"magic\" board game\\\\ with } braces'" in text


def test_fetch_collections_writes_referenced_collections(tmp_path: Path) -> None:
    """Collection fetch should resolve each referenced collection once."""
    output_path = tmp_path / "collections.json"
    options = IngestOptions(
        source_uri=str(dump_fixture("movies_dump.json")),
        batch_size=2,
    )

    def _fetcher(collection_id: int) -> dict[str, object]:
        return {"id": collection_id, "name": f"Collection {collection_id}", "poster_path": None}

    result = _client(tmp_path).fetch_collections(options, str(output_path), fetcher=_fetcher)

    collections = json.loads(output_path.read_text(encoding="utf-8"))
    assert result.succeeded and result.entities_committed == 3
    assert [row["id"] for row in collections] == [10194, 119050, 96871]
    assert collections[0]["poster"] == "/empty"


def test_load_dataset_persists_movies_to_lance(tmp_path: Path) -> None:
    """Loading into the store should commit every decoded movie."""
    pytest.importorskip("lance")
    client = _client(tmp_path)
    options = IngestOptions(
        source_uri=str(dump_fixture("movies_dump.json")),
        batch_size=2,
    )

    result = client.load_dataset(options, "movies")

    assert result.succeeded and client.row_count("movies") == 4
