"""
Unit tests for the Metric model.

Tests verify:
- Line protocol rendering with sorted tags and unsigned integer fields.
- Escaping of special characters in measurement, tags and field keys.
- Empty tag values are omitted.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime

from tplink_edge.src.models import Metric

_TS = datetime(2026, 10, 18, 12, 0, 0, 250000, tzinfo=UTC)
_TS_NS = 1792324800250000000


class TestLineProtocol:
    """Metric.to_line_protocol() renders InfluxDB line protocol."""

    def test_basic_rendering(self) -> None:
        """Tags sorted by key, fields with u suffix, ns timestamp."""
        metric = Metric(
            name="tplink_gateway",
            tags={"wan": "1", "page": "status"},
            fields={"received_bytes": 4294967306, "sent_bytes": 12},
            ts=_TS,
        )

        assert metric.to_line_protocol() == (
            "tplink_gateway,page=status,wan=1 "
            f"received_bytes=4294967306u,sent_bytes=12u {_TS_NS}"
        )

    def test_escapes_special_characters(self) -> None:
        """Commas, spaces and equals signs are backslash-escaped."""
        metric = Metric(
            name="my gateway",
            tags={"host name": "a,b=c"},
            fields={"total bytes": 1},
            ts=_TS,
        )

        assert metric.to_line_protocol() == (
            rf"my\ gateway,host\ name=a\,b\=c total\ bytes=1u {_TS_NS}"
        )

    def test_empty_tag_values_are_omitted(self) -> None:
        """Line protocol does not allow empty tag values."""
        metric = Metric(
            name="tplink_gateway",
            tags={"page": "system_statistic", "mac": ""},
            fields={"bytes": 0},
            ts=_TS,
        )

        assert metric.to_line_protocol() == f"tplink_gateway,page=system_statistic bytes=0u {_TS_NS}"

    def test_escapes_backslashes_first(self) -> None:
        """A trailing backslash cannot escape the following separator."""
        metric = Metric(
            name="tplink\\gw",
            tags={"path": "C:\\dir\\"},
            fields={"bytes": 1},
            ts=_TS,
        )

        assert metric.to_line_protocol() == (
            rf"tplink\\gw,path=C:\\dir\\ bytes=1u {_TS_NS}"
        )
