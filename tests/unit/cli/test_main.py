"""Unit tests for CLI command handling."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cli.main import main
from core.errors import StitchConfigError
from tests.fixture_paths import dump_fixture


def test_cli_json_array_repairs_dump(tmp_path: Path, capsys) -> None:
    """json-array with the object kind should rewrite every object verbatim."""
    output_path = tmp_path / "repaired.json"
    args = [
        "--data-root",
        str(tmp_path),
        "json-array",
        str(dump_fixture("movies_dump.json")),
        "--kind",
        "object",
        "--output",
        str(output_path),
        "--batch-size",
        "2",
    ]

    exit_code = main(args)
    output = capsys.readouterr().out

    repaired = json.loads(output_path.read_text(encoding="utf-8"))
    assert exit_code == 0 and len(repaired) == 6
    assert "entities_decoded=6" in output and "batches_committed=3" in output


def test_cli_surql_writes_statement_file(tmp_path: Path, capsys) -> None:
    """surql should write batches and report skipped objects."""
    output_path = tmp_path / "movies.surql"

    exit_code = main(
        ["surql", str(dump_fixture("movies_dump.json")), "--output", str(output_path)]
    )
    output = capsys.readouterr().out

    assert exit_code == 0 and "entities_skipped=2" in output
    assert "CREATE movie CONTENT $row;" in output_path.read_text(encoding="utf-8")


def test_cli_returns_error_code_for_truncated_dump(tmp_path: Path, capsys) -> None:
    """A structural failure should print counters and exit with code 1."""
    output_path = tmp_path / "truncated.json"

    exit_code = main(
        [
            "json-array",
            str(dump_fixture("truncated_dump.json")),
            "--output",
            str(output_path),
        ]
    )
    captured = capsys.readouterr()

    assert exit_code == 1 and "entities_committed=2" in captured.out
    assert captured.err.startswith("error=")
    assert len(json.loads(output_path.read_text(encoding="utf-8"))) == 2


def test_cli_fetch_collections_requires_token(tmp_path: Path, monkeypatch) -> None:
    """fetch-collections should fail fast without a TMDB token."""
    monkeypatch.delenv("STITCH_TMDB_TOKEN", raising=False)

    with pytest.raises(StitchConfigError):
        main(
            [
                "fetch-collections",
                str(dump_fixture("movies_dump.json")),
                "--output",
                str(tmp_path / "collections.json"),
            ]
        )


def test_cli_rejects_unknown_kind(capsys) -> None:
    """Unknown entity kinds should be rejected by argument parsing."""
    with pytest.raises(SystemExit):
        main(["surql", "dump.json", "--kind", "podcast", "--output", "out.surql"])

    assert "invalid choice" in capsys.readouterr().err


def test_cli_rejects_zero_batch_size(tmp_path: Path) -> None:
    """An explicit zero batch size should be rejected, not replaced by the default."""
    with pytest.raises(StitchConfigError):
        main(
            [
                "json-array",
                str(dump_fixture("movies_dump.json")),
                "--output",
                str(tmp_path / "repaired.json"),
                "--batch-size",
                "0",
            ]
        )
