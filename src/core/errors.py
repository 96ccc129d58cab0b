"""Stitch exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class StitchError(Exception):
    """Base exception for all Stitch failures."""


class StitchConfigError(StitchError):
    """Raised for invalid runtime configuration."""


class StitchSchemaError(StitchError):
    """Raised for invalid or unknown entity schema definitions."""


class StitchIngestError(StitchError):
    """Raised for source reading and ingest failures."""


class StitchStructuralError(StitchIngestError):
    """Raised when object boundaries cannot be recovered from the input.

    Covers unbalanced braces or quotes at end of input and a closing brace
    with no matching opening brace. Fatal for the pipeline run.
    """


class StitchDecodeError(StitchIngestError):
    """Raised when one recovered object cannot be decoded into an entity.

    Recoverable: the pipeline skips the object and keeps scanning.
    """


class StitchSinkError(StitchError):
    """Raised when a destination fails to commit a batch."""


class StitchFetchError(StitchSinkError):
    """Raised when remote reference data cannot be fetched for a batch."""


class StitchDependencyError(StitchError):
    """Raised when an optional runtime dependency is missing."""
