"""Operational utilities for BrewBalance."""

from __future__ import annotations

import json
from collections import deque
from pathlib import Path
from typing import Deque, Dict

from . import dates

Event = Dict[str, object]


class StructuredLogger:
    """Record service events as JSON lines.

    The most recent ``history`` events stay in memory for inspection; when a
    ``path`` is configured every event is also appended to that file.
    """

    def __init__(self, *, path: Path | None = None, history: int = 1000) -> None:
        self.path = path
        self._history: Deque[Event] = deque(maxlen=history)

    def log(self, event_type: str, **fields: object) -> Event:
        record: Event = {"timestamp": dates.utc_now().isoformat(), "event": event_type}
        record.update(fields)
        self._history.append(record)
        if self.path is not None:
            self._append(record)
        return record

    def tail(self, limit: int = 50) -> tuple[Event, ...]:
        if limit <= 0:
            return ()
        return tuple(self._history)[-limit:]

    def events(self, *event_types: str) -> tuple[Event, ...]:
        """Return remembered events whose type is one of ``event_types``, oldest first."""

        wanted = set(event_types)
        return tuple(record for record in self._history if record["event"] in wanted)

    def _append(self, record: Event) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(record, default=str, sort_keys=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")


__all__ = ["StructuredLogger"]
