"""Object boundary recovery for concatenated JSON dumps.

This module scans raw text chunks with a quote-aware, escape-aware
brace-depth state machine. It yields each balanced top-level object
as a text span without loading the full input into memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from core.errors import StitchStructuralError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


@dataclass
class ScannerState:
    """Mutable scanner state carried across chunks.

    Attributes:
        depth: Current brace depth outside quoted text.
        in_quotes: Whether the cursor is inside a quoted string.
        escape_pending: Whether the next character is escaped.
        buffer: Text collected for the object being recovered.
        chars_consumed: Characters processed so far, for error positions.
    """

    depth: int = 0
    in_quotes: bool = False
    escape_pending: bool = False
    buffer: list[str] = field(default_factory=list)
    chars_consumed: int = 0

    def buffered_text(self) -> str:
        """Return the currently buffered text."""
        return "".join(self.buffer)


class ObjectScanner:
    """Incremental scanner emitting one span per balanced top-level object.

    Generators returned by :meth:`feed` and :meth:`feed_line` must be
    exhausted before the next chunk is fed.
    """

    def __init__(self, state: ScannerState | None = None) -> None:
        self._state = state or ScannerState()

    @property
    def state(self) -> ScannerState:
        """Expose scanner state for inspection."""
        return self._state

    def feed(self, chunk: str) -> Iterator[str]:
        """Consume one raw chunk and yield completed object spans.

        Args:
            chunk: Next piece of input text.

        Yields:
            Trimmed text of each object completed inside this chunk.

        Raises:
            StitchStructuralError: If a closing brace has no opening brace.
        """
        state = self._state
        segment_start = 0
        for position, char in enumerate(chunk):
            if state.escape_pending:
                state.escape_pending = False
            elif char == "\\":
                state.escape_pending = True
            elif char == '"':
                state.in_quotes = not state.in_quotes
            elif state.in_quotes:
                continue
            elif char == "{":
                state.depth += 1
            elif char == "}":
                state.depth -= 1
                if state.depth < 0:
                    raise StitchStructuralError(
                        f"Unbalanced closing brace at character {state.chars_consumed + position}: "
                        "no object is open. Check the dump for truncated or corrupted objects."
                    )
                if state.depth == 0:
                    state.buffer.append(chunk[segment_start : position + 1])
                    span = state.buffered_text().strip()
                    state.buffer.clear()
                    segment_start = position + 1
                    yield span
        if segment_start < len(chunk):
            state.buffer.append(chunk[segment_start:])
        state.chars_consumed += len(chunk)

    def feed_line(self, line: str) -> Iterator[str]:
        """Consume one input line without its terminator.

        A newline is kept in the buffer while an object stays open so the
        inner formatting survives for decoding.
        """
        yield from self.feed(line)
        if self._state.depth > 0:
            self._state.buffer.append("\n")
        self._state.chars_consumed += 1

    def finish(self) -> None:
        """Close the stream and verify no object is left open.

        Raises:
            StitchStructuralError: If input ended inside an object or string.
        """
        state = self._state
        if state.depth != 0 or state.in_quotes:
            discarded_length = len(state.buffered_text())
            state.buffer.clear()
            raise StitchStructuralError(
                f"Input ended inside an unterminated object after {state.chars_consumed} "
                f"characters (depth={state.depth}, in_quotes={state.in_quotes}); "
                f"discarded {discarded_length} trailing characters. "
                "The dump is truncated; re-export it and retry."
            )
        trailing_text = state.buffered_text().strip()
        state.buffer.clear()
        if trailing_text:
            _LOGGER.warning(
                "trailing_text_discarded",
                characters=len(trailing_text),
                preview=trailing_text[:40],
            )


def scan_spans(chunks: Iterable[str], scanner: ObjectScanner | None = None) -> Iterator[str]:
    """Yield every object span recovered from a chunk stream.

    Args:
        chunks: Raw input chunks in stream order.
        scanner: Optional scanner to reuse.

    Yields:
        Object spans in input order.

    Raises:
        StitchStructuralError: If braces or quotes are unbalanced.
    """
    active_scanner = scanner or ObjectScanner()
    for chunk in chunks:
        yield from active_scanner.feed(chunk)
    active_scanner.finish()
