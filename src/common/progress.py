"""Structured progress logging utilities."""
from __future__ import annotations

import json
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from .models import ReaderSnapshot


class ProgressLogger:
    """Writes reader snapshots to JSONL for later inspection."""

    def __init__(self, path: Optional[Path]) -> None:
        self.path = path
        if path:
            path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, source: str, snapshot: ReaderSnapshot) -> None:
        if not self.path:
            return
        payload = asdict(snapshot)
        payload["source"] = source
        payload["timestamp"] = time.time()
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload))
            handle.write("\n")
