"""Stitch CLI entry points.
This module exposes commands that stream concatenated JSON dumps into
each supported destination. It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
import sys
from typing import Any, Sequence

from core.config import StitchConfig
from core.constants import DEFAULT_ENTITY_KIND
from core.types import IngestionResult, IngestOptions
from ingest.entity_schemas import supported_entity_kinds
from store.dataset_sdk import StitchClient
from store.lance_sink import resolve_lance_uri


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="stitch",
        description="Recover objects from concatenated JSON dumps and load them in batches",
    )
    parser.add_argument("--data-root", help="Override STITCH_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_load_command(subparsers)
    _add_surql_command(subparsers)
    _add_push_command(subparsers)
    _add_json_array_command(subparsers)
    _add_fetch_collections_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Stitch CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    client = _build_client(args.data_root)
    options = _build_ingest_options(client.config, args)
    if args.command == "load":
        result = client.load_dataset(options, args.dataset, overwrite=args.overwrite)
        print(f"lance_uri={resolve_lance_uri(client.config.data_root, args.dataset)}")
        return _report_result(result)
    if args.command == "surql":
        result = client.write_surql(options, args.output)
        print(f"output_path={args.output}")
        return _report_result(result)
    if args.command == "push":
        result = client.push_surreal(options)
        print(f"surreal_url={client.config.surreal_url}")
        return _report_result(result)
    if args.command == "json-array":
        result = client.write_json_array(options, args.output, reference_style=args.references)
        print(f"output_path={args.output}")
        return _report_result(result)
    if args.command == "fetch-collections":
        result = client.fetch_collections(
            options, args.output, reference_field=args.reference_field
        )
        print(f"output_path={args.output}")
        return _report_result(result)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> StitchClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = StitchConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return StitchClient(config)


def _build_ingest_options(config: StitchConfig, args: argparse.Namespace) -> IngestOptions:
    """Build ingest options from shared command arguments."""
    return IngestOptions(
        source_uri=args.source,
        entity_kind=args.kind,
        batch_size=args.batch_size if args.batch_size is not None else config.batch_size,
        schema_path=args.schema_file,
    )


def _report_result(result: IngestionResult) -> int:
    """Print run counters and map the outcome to an exit code."""
    print(f"entities_decoded={result.entities_decoded}")
    print(f"entities_skipped={result.entities_skipped}")
    print(f"batches_committed={result.batches_committed}")
    print(f"entities_committed={result.entities_committed}")
    print(f"cancelled={str(result.cancelled).lower()}")
    if result.error is not None:
        print(f"error={result.error}", file=sys.stderr)
        return 1
    return 0


def _add_shared_arguments(parser: argparse.ArgumentParser, default_kind: str) -> None:
    """Register source and schema arguments shared by every command."""
    parser.add_argument("source", help="Dump file, '-' for stdin, or s3://bucket/key")
    parser.add_argument(
        "--kind",
        default=default_kind,
        choices=supported_entity_kinds(),
        help="Built-in entity schema",
    )
    parser.add_argument("--schema-file", help="YAML entity schema, overrides --kind")
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Entities per committed batch (default: STITCH_BATCH_SIZE)",
    )


def _add_load_command(subparsers: Any) -> None:
    """Register load subcommand."""
    parser = subparsers.add_parser("load", help="Load a dump into a local Lance dataset")
    _add_shared_arguments(parser, DEFAULT_ENTITY_KIND)
    parser.add_argument("--dataset", required=True, help="Dataset name")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace the dataset instead of appending to it",
    )


def _add_surql_command(subparsers: Any) -> None:
    """Register surql subcommand."""
    parser = subparsers.add_parser("surql", help="Convert a dump into SurrealQL statements")
    _add_shared_arguments(parser, DEFAULT_ENTITY_KIND)
    parser.add_argument("--output", required=True, help="Output .surql file")


def _add_push_command(subparsers: Any) -> None:
    """Register push subcommand."""
    parser = subparsers.add_parser("push", help="Stream a dump into a SurrealDB server")
    _add_shared_arguments(parser, DEFAULT_ENTITY_KIND)


def _add_json_array_command(subparsers: Any) -> None:
    """Register json-array subcommand."""
    parser = subparsers.add_parser(
        "json-array",
        help="Rewrite a dump as a JSON array; use --kind object to keep objects verbatim",
    )
    _add_shared_arguments(parser, DEFAULT_ENTITY_KIND)
    parser.add_argument("--output", required=True, help="Output .json file")
    parser.add_argument(
        "--references",
        default="string",
        choices=("string", "object"),
        help="Render foreign keys as 'kind:id' strings or objects",
    )


def _add_fetch_collections_command(subparsers: Any) -> None:
    """Register fetch-collections subcommand."""
    parser = subparsers.add_parser(
        "fetch-collections",
        help="Fetch collections referenced by a dump from TMDB",
    )
    _add_shared_arguments(parser, DEFAULT_ENTITY_KIND)
    parser.add_argument("--output", required=True, help="Output .json file for collections")
    parser.add_argument(
        "--reference-field",
        default="collection",
        help="Entity field holding the collection reference",
    )
