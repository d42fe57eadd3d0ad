"""
Overflow compensation cache for fixed-width wrapping device counters.

Gateways expose byte and packet counters as 32-bit values that wrap back to a
small number once they exceed their maximum. Polling such a counter directly
yields a value that *decreases* after a wrap, which breaks any downstream rate
computation. The cache turns those readings into monotonically increasing
cumulative values:

- Remembers the last raw reading per counter identity (memory only).
- Treats a reading lower than the previous one as a wraparound and adds the
  counter's modulus ("increment") to that identity's base offset.
- Returns ``raw + base_offset`` as the corrected value.
- Persists the base offset table through an :class:`OffsetFile` whenever it
  changes, so corrections survive restarts.

Known limitations:
- At most one wraparound between two observations is compensated. If a
  counter wraps twice between polls the corrected value undercounts.
- The increment is trusted. A wrong modulus drifts silently.
- Last raw readings are not persisted, so the first observation after a
  restart compares against 0 and a wrap that happened while the process
  was down is not compensated.

Persistence failures are logged and never raised; :meth:`OverflowCache.observe`
always returns a value. :attr:`OverflowCache.persistence_ok` exposes the
outcome of the latest load/dump for callers that want to report it.

All public methods hold an internal re-entrant lock, so one instance may be
shared between threads.

CHANGELOG:
- 2026-10-18: A missing offsets file on first start no longer marks persistence as failing
- 2026-10-18: Add deferred_dump() to write the table once per poll cycle
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tplink_edge.src.offset_file import OffsetFile

logger = logging.getLogger(__name__)


class Observation(NamedTuple):
    """Result of a single counter observation."""

    value: int
    """Corrected cumulative value (raw reading plus base offset)."""

    overflowed: bool
    """Whether this reading was detected as a wraparound."""


class OverflowCache:
    """Tracks wrapping counters and compensates for their wraparounds.

    Args:
        offset_file: Where base offsets are loaded from and dumped to.
            ``None`` keeps everything in memory.

    Usage::

        cache = OverflowCache(OffsetFile("/data/offsets.json"))
        cache.load()
        with cache.deferred_dump():
            sent = cache.get("status", "sent_bytes", raw_sent, 2**32)
    """

    def __init__(self, offset_file: OffsetFile | None = None) -> None:
        self._offset_file = offset_file
        self._last_raw: dict[str, int] = {}
        self._base_offsets: dict[str, int] = {}
        self._lock = threading.RLock()
        self._defer_depth = 0
        self._dirty = False
        self._persistence_ok: bool | None = None

    # ------------------------------------------------------------------
    # Counter observation
    # ------------------------------------------------------------------

    @staticmethod
    def identity(section: str, metric: str) -> str:
        """Compose the stable key for a counter, e.g. ``status_uptime``."""
        return f"{section}_{metric}"

    def observe(self, identity: str, current_raw: int, increment: int) -> Observation:
        """Record a raw reading and return the corrected value.

        A reading strictly lower than the previous one for *identity* is a
        wraparound: the base offset grows by *increment* and the offset table
        is dumped (or marked dirty inside :meth:`deferred_dump`). An identity
        never seen before compares against 0, so its first reading is never
        an overflow.

        Args:
            identity: Stable counter key.
            current_raw: Raw unsigned reading from the device.
            increment: Counter modulus (maximum raw value + 1).

        Returns:
            The corrected value and whether a wraparound was detected.
        """
        with self._lock:
            last_raw = self._last_raw.get(identity, 0)
            overflowed = current_raw < last_raw

            if overflowed:
                logger.warning(
                    "Detected overflow in key %s (old: %d, new: %d)",
                    identity,
                    last_raw,
                    current_raw,
                )
                self._base_offsets[identity] = (
                    self._base_offsets.get(identity, 0) + increment
                )
                self._request_dump()

            self._last_raw[identity] = current_raw
            return Observation(current_raw + self._base_offsets.get(identity, 0), overflowed)

    def check_overflow(
        self,
        section: str,
        metric: str,
        current_raw: int,
        increment: int,
    ) -> Observation:
        """Observe the counter identified by *section* and *metric*."""
        return self.observe(self.identity(section, metric), current_raw, increment)

    def get(self, section: str, metric: str, current_raw: int, increment: int) -> int:
        """Observe a counter and return only its corrected value."""
        return self.check_overflow(section, metric, current_raw, increment).value

    def reset(self) -> None:
        """Forget every counter and offset, then persist the empty table.

        Used when the device itself restarted: its counters begin again at
        zero, so previously accumulated offsets no longer apply.
        """
        with self._lock:
            logger.warning(
                "Resetting overflow cache (%d tracked counter(s))",
                len(self._last_raw),
            )
            self._last_raw.clear()
            self._base_offsets.clear()
            self._request_dump()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """Replace the base offsets with the persisted table.

        On failure the in-memory offsets are left untouched. A file that
        does not exist yet leaves :attr:`persistence_ok` unchanged; an
        unreadable or malformed one sets it to ``False``.

        Returns:
            ``True`` if the table was loaded (or no file is configured).
        """
        if self._offset_file is None:
            return True

        with self._lock:
            if not self._offset_file.exists():
                # Fresh install: nothing persisted yet, persistence is not failing.
                logger.warning(
                    "No offsets file at %s yet, starting from zero",
                    self._offset_file.path,
                )
                return False

            offsets = self._offset_file.load()
            self._persistence_ok = offsets is not None
            if offsets is None:
                return False

            self._base_offsets = offsets
            logger.info(
                "Loaded %d offset(s) from %s",
                len(offsets),
                self._offset_file.path,
            )
            return True

    def dump(self) -> bool:
        """Write the complete base offset table.

        Returns:
            ``True`` if the table was written (or no file is configured).
        """
        with self._lock:
            # A failed write is not retried until the table changes again.
            self._dirty = False
            if self._offset_file is None:
                return True

            ok = self._offset_file.dump(dict(self._base_offsets))
            self._persistence_ok = ok
            return ok

    @contextlib.contextmanager
    def deferred_dump(self) -> Iterator[OverflowCache]:
        """Collapse the dumps triggered inside the block into one.

        The table is written once when the outermost block exits, including
        when it exits with an exception, and only if something changed.
        """
        with self._lock:
            self._defer_depth += 1
        try:
            yield self
        finally:
            with self._lock:
                self._defer_depth -= 1
                if self._defer_depth == 0 and self._dirty:
                    self.dump()

    def _request_dump(self) -> None:
        self._dirty = True
        if self._defer_depth == 0:
            self.dump()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def offsets(self) -> dict[str, int]:
        """Copy of the current identity -> base offset table."""
        with self._lock:
            return dict(self._base_offsets)

    @property
    def tracked_counters(self) -> int:
        """Number of counter identities observed since start or reset."""
        with self._lock:
            return len(self._last_raw)

    @property
    def persistence_ok(self) -> bool | None:
        """Outcome of the latest load or dump; ``None`` before any attempt."""
        return self._persistence_ok
