"""Public SDK surface for Stitch.

This module provides a stable import path for library users.
It re-exports the primary client, typed models, and sink contract.
"""

from __future__ import annotations

from core.config import StitchConfig
from core.errors import (
    StitchDecodeError,
    StitchError,
    StitchSinkError,
    StitchStructuralError,
)
from core.types import Batch, Entity, ForeignKey, IngestionResult, IngestOptions, ProgressUpdate
from ingest.entity_schemas import supported_entity_kinds
from ingest.pipeline import IngestPipelineRunner
from ingest.scanner import ObjectScanner, scan_spans
from store.dataset_sdk import StitchClient
from store.sink import BatchSink

__all__ = [
    "Batch",
    "BatchSink",
    "Entity",
    "ForeignKey",
    "IngestOptions",
    "IngestPipelineRunner",
    "IngestionResult",
    "ObjectScanner",
    "ProgressUpdate",
    "StitchClient",
    "StitchConfig",
    "StitchDecodeError",
    "StitchError",
    "StitchSinkError",
    "StitchStructuralError",
    "scan_spans",
    "supported_entity_kinds",
]
