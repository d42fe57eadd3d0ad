"""
Pydantic model for metrics emitted by the gateway collector.

A :class:`Metric` is one measurement point: a name, string tags, unsigned
integer fields and a timestamp. :meth:`Metric.to_line_protocol` renders it
in InfluxDB line protocol so the daemon can feed a Telegraf ``execd`` input
or any other line-protocol consumer.

CHANGELOG:
- 2026-10-18: Escape backslashes in measurement, tag keys and field keys
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


def _escape_measurement(value: str) -> str:
    return value.replace("\\", "\\\\").replace(",", r"\,").replace(" ", r"\ ")


def _escape_key(value: str) -> str:
    """Escape a tag key, tag value or field key."""
    return (
        value.replace("\\", "\\\\")
        .replace(",", r"\,")
        .replace("=", r"\=")
        .replace(" ", r"\ ")
    )


class Metric(BaseModel):
    """A single measurement point.

    Attributes:
        name: Measurement name, e.g. ``tplink_gateway``.
        tags: Indexed string metadata (page, wan, ip, mac).
        fields: Counter values. Wrapping counters are already corrected.
        ts: Collection timestamp, injected by the collector.
    """

    name: str
    tags: dict[str, str]
    fields: dict[str, int]
    ts: datetime

    def to_line_protocol(self) -> str:
        """Render as ``name,tag=v field=1u <ns timestamp>``."""
        head = _escape_measurement(self.name)
        for key in sorted(self.tags):
            value = self.tags[key]
            if value:
                head += f",{_escape_key(key)}={_escape_key(value)}"

        fields = ",".join(
            f"{_escape_key(key)}={value}u" for key, value in self.fields.items()
        )
        ts_ns = int(self.ts.timestamp()) * 1_000_000_000 + self.ts.microsecond * 1_000
        return f"{head} {fields} {ts_ns}"
