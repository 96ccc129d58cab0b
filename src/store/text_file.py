"""Append-only text output with per-write rollback.

This module backs the file-based sinks. Each batch is rendered in
memory and appended in one write; a failed write truncates the file
back to where the batch started.
"""

from __future__ import annotations

from pathlib import Path
from typing import TextIO

from core.errors import StitchSinkError


class RollbackTextFile:
    """UTF-8 text file that appends whole blocks or nothing."""

    def __init__(self, output_path: Path) -> None:
        self._output_path = output_path
        self._handle: TextIO | None = None

    @property
    def output_path(self) -> Path:
        return self._output_path

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> None:
        """Create parent directories and truncate the output file.

        Raises:
            StitchSinkError: If the file cannot be created.
        """
        try:
            self._output_path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self._output_path.open("w", encoding="utf-8", newline="\n")
        except OSError as error:
            raise StitchSinkError(
                f"Failed to open output file {self._output_path}: {error}. "
                "Check write permissions and available disk space."
            ) from error

    def append(self, text: str) -> None:
        """Append one block, truncating back on failure.

        Raises:
            StitchSinkError: If the block could not be written completely.
        """
        handle = self._require_handle()
        start_offset = handle.tell()
        try:
            handle.write(text)
            handle.flush()
        except OSError as error:
            self._truncate_to(start_offset)
            raise StitchSinkError(
                f"Failed to write to {self._output_path}: {error}. "
                "The partial block was rolled back; free disk space and re-run."
            ) from error

    def close(self) -> None:
        """Flush and close the file if open."""
        if self._handle is None:
            return
        handle = self._handle
        self._handle = None
        try:
            handle.close()
        except OSError as error:
            raise StitchSinkError(
                f"Failed to close output file {self._output_path}: {error}."
            ) from error

    def _truncate_to(self, offset: int) -> None:
        handle = self._require_handle()
        handle.seek(offset)
        handle.truncate()

    def _require_handle(self) -> TextIO:
        if self._handle is None:
            raise StitchSinkError(
                f"Output file {self._output_path} is not open. Open the sink before committing."
            )
        return self._handle
