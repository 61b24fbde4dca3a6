"""Shared error codes and exceptions for the reader stack."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"
    IO_ERROR = "IO_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    LOOKAHEAD_ERROR = "LOOKAHEAD_ERROR"
    MARK_INVALID = "MARK_INVALID"


class ReaderError(RuntimeError):
    """Exception carrying a structured error code for callers and the CLI."""

    def __init__(self, code: ErrorCode, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.context = context or {}

    def __str__(self) -> str:  # pragma: no cover - formatting sugar
        base = super().__str__()
        return f"[{self.code.value}] {base}" if base else self.code.value


class LookAheadError(ReaderError):
    """Raised when a look-ahead request is rejected before any I/O happens."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(ErrorCode.LOOKAHEAD_ERROR, message, context=context)


class MarkInvalidError(ReaderError):
    """Raised by ``reset()`` when no valid mark is held by the source."""

    def __init__(self, message: str = "Mark invalid", *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(ErrorCode.MARK_INVALID, message, context=context)
