"""
Pure helpers for pulling data out of TP-Link gateway status pages.

The gateway web UI embeds its data as JavaScript array literals::

    var statistList = new Array(
    1234567, 7654321, 8910, 1112,
    0,0 );

:func:`find_js_array` returns the items of such an array as strings and
:func:`to_uint64_list` converts them to unsigned integers. No I/O.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

UINT64_MAX: int = 2**64 - 1


class ScrapeError(ValueError):
    """Raised when a gateway page does not have the expected structure."""


def find_js_array(content: str, name: str) -> list[str]:
    """Return the items of the ``var <name> = new Array(...)`` literal.

    Args:
        content: Full page body.
        name: JavaScript variable name.

    Returns:
        Items with line breaks removed and surrounding whitespace stripped.
        Quoted strings keep their quotes; see :func:`unquote`.

    Raises:
        ScrapeError: If the array is not present or not terminated.
    """
    start = f"var {name} = new Array("
    begin = content.find(start)
    if begin == -1:
        raise ScrapeError(f"{name} not found")

    body_start = begin + len(start)
    end = content.find(");", body_start)
    if end == -1:
        raise ScrapeError(f"{name} is not terminated")

    body = content[body_start:end].replace("\r", "").replace("\n", "").strip()
    return [item.strip() for item in body.split(",")]


def unquote(item: str) -> str:
    """Strip the double quotes around a JavaScript string item."""
    return item.strip().strip('"')


def to_uint64(item: str) -> int:
    """Parse one item as an unsigned 64-bit integer, defaulting to 0."""
    text = unquote(item)
    if not (text.isascii() and text.isdigit()):
        return 0
    value = int(text)
    return value if value <= UINT64_MAX else 0


def to_uint64_list(items: list[str]) -> list[int]:
    """Parse every item with :func:`to_uint64`.

    Arrays are padded with non-numeric entries (MACs, IPs, empty trailing
    items), which map to 0 so positional indexing stays intact.
    """
    return [to_uint64(item) for item in items]
