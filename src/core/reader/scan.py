"""Whole-stream scanning on top of the lookahead reader."""
from __future__ import annotations

import logging
from typing import Callable, Iterator, List, Optional, Tuple

from common.models import CR, END_OF_STREAM, LF, ReaderSnapshot, ScanSummary
from .lookahead import LookaheadLineReader

logger = logging.getLogger(__name__)

SnapshotCallback = Optional[Callable[[ReaderSnapshot], None]]

DEFAULT_BLOCK_SIZE = 8192


def scan_stream(
    reader: LookaheadLineReader,
    *,
    block_size: int = DEFAULT_BLOCK_SIZE,
    progress: SnapshotCallback = None,
    progress_every: int = 1,
) -> ScanSummary:
    """Consume ``reader`` in blocks and summarize characters, lines, and terminators."""

    summary = ScanSummary(source=reader.name)
    buffer: List[str] = [""] * max(1, block_size)
    line_length = 0
    pending_cr = False
    blocks = 0

    while True:
        if reader.look_ahead() is END_OF_STREAM:
            # A single-char read settles the count for an unterminated last line.
            reader.read()
            break
        count = reader.read_into(buffer)
        if count == 0:
            break
        blocks += 1
        for char in buffer[:count]:
            if pending_cr:
                pending_cr = False
                if char == LF:
                    summary.terminators["crlf"] += 1
                    continue
                summary.terminators["cr"] += 1
            if char == CR:
                pending_cr = True
            elif char == LF:
                summary.terminators["lf"] += 1
            else:
                line_length += 1
                continue
            summary.longest_line = max(summary.longest_line, line_length)
            line_length = 0
        if progress and blocks % max(1, progress_every) == 0:
            progress(reader.snapshot())

    if pending_cr:
        summary.terminators["cr"] += 1
    summary.longest_line = max(summary.longest_line, line_length)
    summary.characters = reader.position
    summary.lines = reader.current_line_number if summary.characters else 0
    logger.debug(
        "Scanned %s: %d chars, %d lines in %d blocks",
        summary.source,
        summary.characters,
        summary.lines,
        blocks,
    )
    if progress:
        progress(reader.snapshot())
    return summary


def iter_logical_lines(reader: LookaheadLineReader) -> Iterator[Tuple[int, str]]:
    """Yield ``(line_number, text)`` for each remaining line of ``reader``."""

    while True:
        line_number = reader.eol_counter + 1
        line = reader.read_logical_line()
        if line is None:
            return
        yield line_number, line
