"""Operational utilities for Chorearoo."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Callable

from .clock import now


class StructuredLogger:
    """Write JSON lines log entries for parent inspection."""

    def __init__(
        self,
        *,
        path: Path | str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.path = Path(path) if path else None
        self._clock = clock or now
        self._entries: list[dict] = []

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": self._clock().isoformat(), "event": event_type, **fields}
        self._entries.append(entry)
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])

    def events(self, event_type: str) -> tuple[dict, ...]:
        return tuple(entry for entry in self._entries if entry["event"] == event_type)


__all__ = ["StructuredLogger"]
