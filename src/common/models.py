"""Data models shared across the reader core, scanning helpers, and CLI."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Union

CR = "\r"
LF = "\n"


class StreamMarker(Enum):
    """Non-character values a cursor can hold in place of a consumed char."""

    UNDEFINED = "undefined"
    END_OF_STREAM = "end-of-stream"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


UNDEFINED = StreamMarker.UNDEFINED
END_OF_STREAM = StreamMarker.END_OF_STREAM

# A consumed character is a one-character str; the markers cover "nothing yet" and "exhausted".
CharOrMarker = Union[str, StreamMarker]


def describe_char(value: CharOrMarker) -> str:
    """Render a cursor value for logs and JSON payloads."""

    if isinstance(value, StreamMarker):
        return value.value
    return repr(value)


@dataclass(slots=True)
class GlobalSettings:
    """Global knobs that apply across profiles."""

    encoding: str = "utf-8"
    error_policy: str = "fail-fast"  # fail-fast | replace


@dataclass(slots=True)
class ReaderSettings:
    """Profile-specific buffering limits."""

    description: str = "default"
    buffer_size: int = 8192
    max_lookahead: int = 64


@dataclass(slots=True)
class ReaderConfig:
    """Resolved configuration for a single run."""

    global_settings: GlobalSettings = field(default_factory=GlobalSettings)
    profile: ReaderSettings = field(default_factory=ReaderSettings)


@dataclass(frozen=True, slots=True)
class ReaderSnapshot:
    """Point-in-time view of a reader's cursor state."""

    position: int
    line_number: int
    last_char: str
    closed: bool = False


@dataclass(slots=True)
class ScanSummary:
    """Result of consuming a whole stream through the reader."""

    source: str
    characters: int = 0
    lines: int = 0
    longest_line: int = 0
    terminators: Dict[str, int] = field(default_factory=lambda: {"cr": 0, "lf": 0, "crlf": 0})
