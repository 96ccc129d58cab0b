"""Batch sink contract.

This module defines the destination abstraction consumed by the ingest
pipeline. A sink commits one batch at a time, all-or-nothing; batches
committed earlier stay committed when a later one fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from core.types import Batch


class BatchSink(ABC):
    """Abstract destination for closed entity batches.

    ``open`` and ``close`` are optional lifecycle hooks; the pipeline
    calls ``close`` even when the run halts on an error.
    """

    def open(self) -> None:
        """Acquire files, clients, or connections."""

    def close(self) -> None:
        """Release resources and finalize output."""

    @abstractmethod
    def commit(self, batch: Batch) -> int:
        """Persist one batch atomically.

        Args:
            batch: Closed batch to persist.

        Returns:
            Number of entities committed.

        Raises:
            StitchSinkError: If the batch could not be committed. Anything
                partially written for this batch has been rolled back.
        """

    def __enter__(self) -> "BatchSink":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
