"""
Health file writer for the gateway edge daemon.

Writes a JSON health file at a configurable path with three fields:
- last_poll_ts: ISO timestamp of the most recent collection cycle.
- tracked_counters: Number of counters known to the overflow cache.
- persistence_ok: Outcome of the latest offset load/dump (null if none yet).

The file is rewritten on every state change, providing a simple liveness
and persistence-health signal that Docker HEALTHCHECK or monitoring can
inspect.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes edge health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_poll_ts: str | None = None
        self._tracked_counters: int = 0
        self._persistence_ok: bool | None = None

    def record_poll(self) -> None:
        """Record a collection cycle and write health file."""
        self._last_poll_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def set_cache_state(self, tracked_counters: int, persistence_ok: bool | None) -> None:
        """Update overflow cache state and write health file."""
        self._tracked_counters = tracked_counters
        self._persistence_ok = persistence_ok
        self._write()

    def _write(self) -> None:
        data = {
            "last_poll_ts": self._last_poll_ts,
            "tracked_counters": self._tracked_counters,
            "persistence_ok": self._persistence_ok,
        }
        self.path.write_text(json.dumps(data))
