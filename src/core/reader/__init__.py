"""Lookahead character reader with line and position tracking."""

from .lookahead import LookaheadLineReader
from .scan import iter_logical_lines, scan_stream
from .source import BufferedCharSource, CharSource, open_path

__all__ = [
    "BufferedCharSource",
    "CharSource",
    "LookaheadLineReader",
    "iter_logical_lines",
    "open_path",
    "scan_stream",
]
