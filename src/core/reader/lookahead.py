"""Character cursor with non-destructive look-ahead and line bookkeeping."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Optional

from common.errors import ErrorCode, LookAheadError, ReaderError
from common.models import (
    CR,
    END_OF_STREAM,
    LF,
    UNDEFINED,
    CharOrMarker,
    ReaderConfig,
    ReaderSnapshot,
    StreamMarker,
    describe_char,
)
from .source import DEFAULT_BUFFER_SIZE, BufferedCharSource, CharSource, open_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOOKAHEAD = 64
NUL = "\0"


class LookaheadLineReader:
    """
    Reads characters or blocks from a ``CharSource`` while tracking position
    and logical line numbers.

    ``position`` counts characters delivered by consuming reads. The EOL
    counter is bumped once per CR, LF or CRLF; a CRLF split across two block
    reads is still one break because the first slot of a block is compared
    with the last character of the previous read. Reaching end of stream after
    an unterminated line counts that line once.

    Look-ahead uses the source's mark/reset window and never changes cursor
    state. The reader is meant for a single owner; nothing is locked.
    """

    def __init__(
        self,
        source: CharSource,
        *,
        max_lookahead: int = DEFAULT_MAX_LOOKAHEAD,
        name: Optional[str] = None,
    ) -> None:
        if max_lookahead <= 0:
            raise ReaderError(ErrorCode.INVALID_ARGUMENT, f"max_lookahead must be positive, got {max_lookahead}")
        self._source = source
        self.max_lookahead = max_lookahead
        self.name = name or str(getattr(source, "name", "<source>"))
        self._last_char: CharOrMarker = UNDEFINED
        self._eol_counter = 0
        self._position = 0
        self._closed = False

    @classmethod
    def from_string(
        cls,
        text: str,
        *,
        bufsize: int = DEFAULT_BUFFER_SIZE,
        max_lookahead: int = DEFAULT_MAX_LOOKAHEAD,
    ) -> "LookaheadLineReader":
        return cls(BufferedCharSource(text, bufsize=bufsize), max_lookahead=max_lookahead)

    @classmethod
    def from_path(cls, path: Path, config: Optional[ReaderConfig] = None) -> "LookaheadLineReader":
        config = config or ReaderConfig()
        source = open_path(
            path,
            encoding=config.global_settings.encoding,
            error_policy=config.global_settings.error_policy,
            bufsize=config.profile.buffer_size,
        )
        return cls(source, max_lookahead=config.profile.max_lookahead, name=str(path))

    # Cursor state -----------------------------------------------------

    @property
    def position(self) -> int:
        return self._position

    @property
    def eol_counter(self) -> int:
        return self._eol_counter

    @property
    def last_char(self) -> CharOrMarker:
        """Last consumed character, ``UNDEFINED`` before any read, or ``END_OF_STREAM``."""
        return self._last_char

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def current_line_number(self) -> int:
        # At a terminator, at the start, or at the end the counter is exact;
        # mid-line it has not yet seen the terminator of the current line.
        if isinstance(self._last_char, StreamMarker) or self._last_char in (CR, LF):
            return self._eol_counter
        return self._eol_counter + 1

    def snapshot(self) -> ReaderSnapshot:
        return ReaderSnapshot(
            position=self._position,
            line_number=self.current_line_number,
            last_char=describe_char(self._last_char),
            closed=self._closed,
        )

    # Consuming reads --------------------------------------------------

    def read(self) -> CharOrMarker:
        current = self._source.read()
        if _is_line_break(current, self._last_char):
            self._eol_counter += 1
        self._last_char = current
        if current is not END_OF_STREAM:
            self._position += 1
        return current

    def read_into(self, buffer: List[str], offset: int = 0, length: Optional[int] = None) -> int:
        """
        Fill ``buffer[offset:offset + length]`` from the source.

        Returns the number of characters delivered; 0 with a non-zero
        ``length`` means the stream is exhausted. A zero ``length`` returns
        0 without touching the source.
        """

        if length is None:
            length = len(buffer) - offset
        if offset < 0 or length < 0 or offset + length > len(buffer):
            raise ReaderError(
                ErrorCode.INVALID_ARGUMENT,
                f"Invalid slice offset={offset} length={length} for buffer of {len(buffer)}",
            )
        if length == 0:
            return 0

        count = self._source.readinto(buffer, offset, length)
        if count <= 0:
            self._last_char = END_OF_STREAM
            return 0

        previous = self._last_char
        for char in buffer[offset:offset + count]:
            if _is_line_break(char, previous):
                self._eol_counter += 1
            previous = char
        self._last_char = previous
        self._position += count
        return count

    def read_logical_line(self) -> Optional[str]:
        """
        Consume one line and return it without its terminator, or ``None``
        when the stream is already exhausted.

        Characters are really consumed here; do not use this on input a
        tokenizer still has to scan.
        """

        if self.look_ahead() is END_OF_STREAM:
            return None
        chars: List[str] = []
        while True:
            current = self.read()
            if current == CR and self.look_ahead() == LF:
                self.read()
            if current is END_OF_STREAM or current in (CR, LF):
                break
            chars.append(current)
        return "".join(chars)

    # Look-ahead -------------------------------------------------------

    def look_ahead(self) -> CharOrMarker:
        """Return what ``read()`` would return next without consuming it."""
        self._source.mark(1)
        current = self._source.read()
        self._source.reset()
        return current

    def look_ahead_into(self, buffer: List[str]) -> int:
        """
        Fill ``buffer`` with upcoming characters without consuming them.

        Returns how many slots hold valid characters; slots past that keep
        whatever they held before.
        """

        size = len(buffer)
        if size > self.max_lookahead:
            raise LookAheadError(
                f"Look-ahead of {size} exceeds the limit of {self.max_lookahead}",
                context={"requested": size, "limit": self.max_lookahead},
            )
        if size == 0:
            return 0
        self._source.mark(size)
        count = self._source.readinto(buffer, 0, size)
        self._source.reset()
        return count

    def look_ahead_chars(self, count: int) -> List[str]:
        """Return ``count`` upcoming slots; unfilled slots near the end of stream hold NUL."""
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise LookAheadError(f"Look-ahead count must be a non-negative integer, got {count!r}")
        buffer = [NUL] * count
        self.look_ahead_into(buffer)
        return buffer

    # Lifecycle --------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        # State first, so a failing source close still leaves the reader closed.
        self._closed = True
        self._last_char = END_OF_STREAM
        logger.debug("Closing reader %s at position %d", self.name, self._position)
        self._source.close()

    def __enter__(self) -> "LookaheadLineReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        line = self.read_logical_line()
        if line is None:
            raise StopIteration
        return line

    def __repr__(self) -> str:
        return (
            f"LookaheadLineReader({self.name!r}, position={self._position}, "
            f"line={self.current_line_number}, last_char={describe_char(self._last_char)})"
        )


def _is_line_break(current: CharOrMarker, previous: CharOrMarker) -> bool:
    if current == CR:
        return True
    if current == LF:
        return previous != CR
    if current is END_OF_STREAM:
        return previous not in (CR, LF, END_OF_STREAM)
    return False
