"""Character sources with a bounded mark/reset window."""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Union

from common.config import error_mode_from_policy
from common.errors import ErrorCode, MarkInvalidError, ReaderError
from common.models import END_OF_STREAM, CharOrMarker

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 8192


class CharSource(Protocol):
    """Sequential character provider the lookahead reader is built on."""

    def read(self) -> CharOrMarker:
        ...

    def readinto(self, buffer: List[str], offset: int, length: int) -> int:
        ...

    def mark(self, read_ahead_limit: int) -> None:
        ...

    def reset(self) -> None:
        ...

    def close(self) -> None:
        ...


class BufferedCharSource:
    """
    Buffers a string or text stream and supports mark/reset re-reading.

    Characters from the mark onwards are retained across refills until more
    than ``read_ahead_limit`` characters have been read past it, after which
    the mark is dropped and ``reset()`` fails.
    """

    def __init__(
        self,
        stream: Union[str, io.IOBase],
        *,
        bufsize: int = DEFAULT_BUFFER_SIZE,
        name: Optional[str] = None,
    ) -> None:
        if bufsize <= 0:
            raise ReaderError(ErrorCode.INVALID_ARGUMENT, f"bufsize must be positive, got {bufsize}")
        self.bufsize = bufsize
        self._buffer = ""
        self._pointer = 0
        self._mark = -1
        self._mark_limit = 0
        self._stream: Optional[io.IOBase] = None
        self._eof = False
        self._closed = False

        if isinstance(stream, str):
            self.name = name or "<string>"
            self._buffer = stream
            self._eof = True
        elif isinstance(stream, io.IOBase):
            self.name = name or str(getattr(stream, "name", "<stream>"))
            if not stream.readable():
                raise ReaderError(ErrorCode.IO_ERROR, f"stream must be readable: {self.name}")
            self._stream = stream
        else:
            raise ReaderError(
                ErrorCode.INVALID_ARGUMENT,
                f"Unsupported source type {type(stream).__name__}",
            )

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self) -> CharOrMarker:
        self._ensure_open()
        if self._pointer >= len(self._buffer) and not self._fill():
            return END_OF_STREAM
        char = self._buffer[self._pointer]
        self._pointer += 1
        return char

    def readinto(self, buffer: List[str], offset: int, length: int) -> int:
        """Copy up to ``length`` characters into ``buffer[offset:]``; 0 means end of stream."""

        self._ensure_open()
        delivered = 0
        while delivered < length:
            available = len(self._buffer) - self._pointer
            if available <= 0:
                if not self._fill():
                    break
                continue
            take = min(available, length - delivered)
            start = offset + delivered
            buffer[start:start + take] = self._buffer[self._pointer:self._pointer + take]
            self._pointer += take
            delivered += take
        return delivered

    def mark(self, read_ahead_limit: int) -> None:
        self._ensure_open()
        if read_ahead_limit < 0:
            raise ReaderError(
                ErrorCode.INVALID_ARGUMENT,
                f"read_ahead_limit must not be negative, got {read_ahead_limit}",
            )
        self._mark = self._pointer
        self._mark_limit = read_ahead_limit

    def reset(self) -> None:
        self._ensure_open()
        if self._mark < 0:
            raise MarkInvalidError(context={"source": self.name})
        self._pointer = self._mark

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._buffer = ""
        self._pointer = 0
        self._mark = -1
        if self._stream is not None:
            logger.debug("Closing character source %s", self.name)
            self._stream.close()

    def __enter__(self) -> "BufferedCharSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Internal helpers -------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise ReaderError(ErrorCode.IO_ERROR, f"Stream closed: {self.name}")

    def _fill(self) -> bool:
        if self._stream is None or self._eof:
            return False
        if self._mark >= 0 and self._pointer - self._mark > self._mark_limit:
            logger.debug(
                "Dropping mark on %s: read %d chars past a limit of %d",
                self.name,
                self._pointer - self._mark,
                self._mark_limit,
            )
            self._mark = -1
        keep_from = self._mark if self._mark >= 0 else self._pointer
        data = self._stream.read(self.bufsize)
        if not data:
            self._eof = True
            return False
        self._buffer = self._buffer[keep_from:] + data
        self._pointer -= keep_from
        if self._mark >= 0:
            self._mark = 0
        return True


def open_path(
    path: Path,
    *,
    encoding: str = "utf-8",
    error_policy: str = "fail-fast",
    bufsize: int = DEFAULT_BUFFER_SIZE,
) -> BufferedCharSource:
    """Open ``path`` as a character source; line endings are passed through untranslated."""

    handle = Path(path).open("r", encoding=encoding, errors=error_mode_from_policy(error_policy), newline="")
    logger.debug("Opened %s (encoding=%s, bufsize=%d)", path, encoding, bufsize)
    return BufferedCharSource(handle, bufsize=bufsize, name=str(path))
