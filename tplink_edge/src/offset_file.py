"""
Durable JSON file holding the per-counter base offsets of the overflow cache.

The file is a flat JSON object mapping counter identity to an unsigned 64-bit
offset, e.g. ``{"status_uptime": 0, "status_sent_bytes": 4294967296}``.
Only offsets are stored; last raw readings live in memory.

Failures never raise: a missing, unreadable or malformed file is logged and
``load()`` returns ``None``; a failed write is logged and ``dump()`` returns
``False``. Writes go through a sibling temporary file followed by an atomic
rename, so a crash mid-write leaves the previous table intact.

There is no cross-process locking. Exactly one process may write a given
file.

CHANGELOG:
- 2026-10-18: Refuse to dump tables load() would reject; tell a missing file from a broken one
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path
from typing import Annotated

from pydantic import Field, StrictInt, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

UINT64_MAX: int = 2**64 - 1
"""Largest offset representable in the persisted table."""

DEFAULT_FILE_MODE: int = 0o644
"""Owner read/write, group/other read."""

_OFFSETS = TypeAdapter(dict[str, Annotated[StrictInt, Field(ge=0, le=UINT64_MAX)]])


class OffsetFile:
    """Loads and stores the base offset table at a fixed path.

    Args:
        path: Location of the JSON file. Accepts ``str`` or ``pathlib.Path``.
        mode: Permission bits applied to the written file.
    """

    def __init__(self, path: str | Path, mode: int = DEFAULT_FILE_MODE) -> None:
        self.path = Path(path)
        self._mode = mode

    def load(self) -> dict[str, int] | None:
        """Read and validate the offset table.

        Returns:
            The identity -> offset mapping, or ``None`` if the file is
            missing, unreadable, or does not hold a flat object of
            non-negative 64-bit integers.
        """
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            logger.warning("No offsets file at %s yet, starting from zero", self.path)
            return None
        except OSError as exc:
            logger.warning("Loading offsets from %s failed: %s", self.path, exc)
            return None

        try:
            return _OFFSETS.validate_json(content)
        except ValidationError as exc:
            logger.warning(
                "Offsets file %s is malformed (%d error(s)): %s",
                self.path,
                exc.error_count(),
                exc.errors()[0]["msg"],
            )
            return None

    def exists(self) -> bool:
        """Whether the offsets file has been written yet."""
        return self.path.exists()

    def dump(self, offsets: dict[str, int]) -> bool:
        """Overwrite the file with *offsets*.

        Args:
            offsets: The complete identity -> offset table.

        Returns:
            ``True`` if the file now holds *offsets*, ``False`` otherwise.
            A table that :meth:`load` would reject (e.g. an offset above
            ``UINT64_MAX``) is not written.
        """
        try:
            _OFFSETS.validate_python(offsets)
        except ValidationError as exc:
            logger.warning(
                "Refusing to dump invalid offsets to %s: %s",
                self.path,
                exc.errors()[0]["msg"],
            )
            return False

        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            tmp_path.write_bytes(_OFFSETS.dump_json(offsets))
            os.chmod(tmp_path, self._mode)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.warning("Dumping offsets to %s failed: %s", self.path, exc)
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            return False

        logger.debug("Dumped %d offset(s) to %s", len(offsets), self.path)
        return True
