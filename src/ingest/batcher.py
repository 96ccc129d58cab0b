"""Fixed-size batching of decoded entities.

This module groups entities into ordered batches with monotonically
increasing indices. Only the final batch of a run may be short.
"""

from __future__ import annotations

from core.errors import StitchConfigError
from core.types import Batch, Entity


class EntityBatcher:
    """Accumulate entities and close batches at a fixed size."""

    def __init__(self, batch_size: int) -> None:
        _validate_batch_size(batch_size)
        self._batch_size = batch_size
        self._open_entities: list[Entity] = []
        self._next_index = 0

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def pending_count(self) -> int:
        """Return entities in the open batch."""
        return len(self._open_entities)

    @property
    def batches_closed(self) -> int:
        """Return how many batches have been closed so far."""
        return self._next_index

    def push(self, entity: Entity) -> Batch | None:
        """Append an entity and return the batch it completed, if any."""
        self._open_entities.append(entity)
        if len(self._open_entities) < self._batch_size:
            return None
        return self._close_open_batch()

    def flush(self) -> Batch | None:
        """Close the open batch at end of stream.

        Returns:
            Final short batch, or ``None`` when nothing is pending.
        """
        if not self._open_entities:
            return None
        return self._close_open_batch()

    def _close_open_batch(self) -> Batch:
        batch = Batch(index=self._next_index, entities=tuple(self._open_entities))
        self._open_entities = []
        self._next_index += 1
        return batch


def _validate_batch_size(batch_size: int) -> None:
    """Validate batch size input."""
    if batch_size < 1:
        raise StitchConfigError(
            f"Invalid batch size {batch_size}: expected value >= 1. "
            "Use --batch-size with a positive integer."
        )
