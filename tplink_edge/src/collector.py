"""
Async collector for TP-Link gateway traffic counters.

Fetches the status and system statistic pages of the gateway web UI, scrapes
the JavaScript arrays embedded in them, and returns :class:`Metric` points.
The gateway reports 32-bit wrapping byte/packet counters; every cumulative
counter goes through the :class:`OverflowCache` so emitted values keep
increasing across wraparounds.

Designed to be robust:

- Exponential backoff on failures (capped at MAX_BACKOFF_S).
- Never propagates exceptions to the caller; failures return ``None``.
- All offset dumps of one cycle are collapsed into a single write that
  completes before :meth:`GatewayCollector.gather` returns.
- A decreasing uptime means the gateway rebooted and reset its counters;
  the overflow cache is then cleared instead of reporting a wraparound.

CHANGELOG:
- 2026-10-18: Reject a zero statList row stride
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
import socket
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import httpx

from tplink_edge.src.models import Metric
from tplink_edge.src.scraper import (
    ScrapeError,
    find_js_array,
    to_uint64,
    to_uint64_list,
    unquote,
)

if TYPE_CHECKING:
    from tplink_edge.src.overflow_cache import OverflowCache

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MEASUREMENT: str = "tplink_gateway"

COUNTER_MODULUS: int = 2**32
"""Modulus of the gateway's 32-bit traffic counters."""

STATUS_PAGE: str = "/userRpm/StatusRpm.htm"
SYSTEM_STATISTIC_PAGE: str = "/userRpm/SystemStatisticRpm.htm?Num_per_page=100"

BASE_BACKOFF_S: float = 1.0
"""Initial backoff delay in seconds after the first failed cycle."""

MAX_BACKOFF_S: float = 60.0
"""Maximum backoff delay in seconds (cap for exponential growth)."""

DEFAULT_TIMEOUT_S: float = 10.0

# Field name -> statistList index.
_STATUS_FIELDS: tuple[tuple[str, int], ...] = (
    ("received_bytes", 0),
    ("sent_bytes", 1),
    ("received_packets", 2),
    ("sent_packets", 3),
)

# Per-host statList row: index, ip, mac, total packets, total bytes, then the
# current-interval rates below.
_RATE_FIELDS: tuple[str, ...] = (
    "packets",
    "bytes",
    "icmp_tx",
    "icmp_tx_max",
    "udp_tx",
    "udp_tx_max",
    "tcp_syn_tx",
    "tcp_syn_tx_max",
)
_ROW_WIDTH: int = 5 + len(_RATE_FIELDS)


class GatewayError(Exception):
    """Raised when the gateway answers but cannot be collected from."""


class GatewayCollector:
    """Stateful TP-Link gateway collector with exponential backoff.

    Args:
        address: Base URL of the gateway web UI, e.g. ``http://192.168.0.1``.
        username: HTTP basic auth user.
        password: HTTP basic auth password.
        cache: Overflow cache correcting the cumulative counters.
        timeout_s: Timeout per HTTP request.
        debug: Log page bodies at DEBUG level.
    """

    def __init__(
        self,
        *,
        address: str,
        username: str,
        password: str,
        cache: OverflowCache,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        debug: bool = False,
    ) -> None:
        self._address = address.rstrip("/")
        self._auth = (username, password)
        self._cache = cache
        self._timeout_s = timeout_s
        self._debug = debug
        self._ip: str | None = None
        self._consecutive_failures: int = 0

    async def gather(self) -> list[Metric] | None:
        """Execute one collection cycle with backoff on failure.

        Returns:
            One status metric followed by one metric per LAN host, or
            ``None`` on any error.
        """
        if self._consecutive_failures > 0:
            delay = min(
                BASE_BACKOFF_S * (2 ** (self._consecutive_failures - 1)),
                MAX_BACKOFF_S,
            )
            logger.warning(
                "Backoff: sleeping %.1fs before retry (consecutive failures: %d)",
                delay,
                self._consecutive_failures,
            )
            await asyncio.sleep(delay)

        ts = datetime.now(tz=UTC)
        try:
            result = await self._gather(ts)
        except (httpx.HTTPError, OSError, ScrapeError, GatewayError) as exc:
            logger.warning("Gathering from %s failed: %s", self._address, exc)
            result = None
        except Exception:
            logger.warning(
                "Unexpected error while gathering from %s",
                self._address,
                exc_info=True,
            )
            result = None

        if result is not None:
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1

        return result

    # ------------------------------------------------------------------
    # Page collectors
    # ------------------------------------------------------------------

    async def _gather(self, ts: datetime) -> list[Metric]:
        if self._ip is None:
            self._ip = await self._resolve_ip()

        referer_host = f"[{self._ip}]" if ":" in self._ip else self._ip
        async with httpx.AsyncClient(
            auth=self._auth,
            headers={"Referer": f"http://{referer_host}"},
            timeout=self._timeout_s,
        ) as client:
            with self._cache.deferred_dump():
                metrics = [await self._status(client, ts)]
                metrics.extend(await self._system_statistic(client, ts))
        return metrics

    async def _status(self, client: httpx.AsyncClient, ts: datetime) -> Metric:
        """Collect WAN totals from the status page."""
        content = await self._fetch(client, STATUS_PAGE)

        status_para = find_js_array(content, "statusPara")
        if len(status_para) < 5:
            raise ScrapeError(f"unexpected statusPara size ({len(status_para)})")

        uptime = to_uint64(status_para[4])
        if self._cache.check_overflow("status", "uptime", uptime, 0).overflowed:
            logger.warning("Gateway uptime went backwards, assuming it rebooted")
            self._cache.reset()

        statist_list = find_js_array(content, "statistList")

        if unquote(status_para[1]) != "1":
            raise GatewayError("multiple WANs are not supported")

        if len(statist_list) < 4:
            raise ScrapeError(f"unexpected statistList size ({len(statist_list)})")

        values = to_uint64_list(statist_list)
        fields = {
            name: self._cache.get("status", name, values[index], COUNTER_MODULUS)
            for name, index in _STATUS_FIELDS
        }
        return Metric(
            name=MEASUREMENT,
            tags={"page": "status", "wan": "1"},
            fields=fields,
            ts=ts,
        )

    async def _system_statistic(self, client: httpx.AsyncClient, ts: datetime) -> list[Metric]:
        """Collect per-host traffic from the system statistic page."""
        content = await self._fetch(client, SYSTEM_STATISTIC_PAGE)

        rule_para = find_js_array(content, "StatRulePara")
        if len(rule_para) < 6:
            raise ScrapeError(f"unexpected StatRulePara size ({len(rule_para)})")

        stat_list = find_js_array(content, "statList")
        list_size = to_uint64(rule_para[4])
        stride = to_uint64(rule_para[5])
        if list_size > 0 and stride == 0:
            raise ScrapeError(f"invalid statList row stride ({rule_para[5]})")
        values = to_uint64_list(stat_list)

        metrics: list[Metric] = []
        for i in range(list_size):
            row = i * stride
            if row + _ROW_WIDTH > len(stat_list):
                raise ScrapeError(f"statList row {i} out of range ({len(stat_list)} items)")

            mac = unquote(stat_list[row + 2])
            section = f"system_statistic_{mac}"
            fields = {
                "total_packets": self._cache.get(
                    section, "total_packets", values[row + 3], COUNTER_MODULUS
                ),
                "total_bytes": self._cache.get(
                    section, "total_bytes", values[row + 4], COUNTER_MODULUS
                ),
            }
            for offset, name in enumerate(_RATE_FIELDS, start=5):
                fields[name] = values[row + offset]

            metrics.append(
                Metric(
                    name=MEASUREMENT,
                    tags={
                        "page": "system_statistic",
                        "ip": unquote(stat_list[row + 1]),
                        "mac": mac,
                    },
                    fields=fields,
                    ts=ts,
                )
            )

        return metrics

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _fetch(self, client: httpx.AsyncClient, resource: str) -> str:
        response = await client.get(f"{self._address}{resource}")

        if self._debug:
            logger.debug("%s: %s", resource, response.text.replace("\n", ""))

        if response.status_code // 100 != 2:
            raise GatewayError(f"gateway returned {response.status_code} for {resource}")

        return response.text

    async def _resolve_ip(self) -> str:
        """Resolve the gateway host once; its IP goes into the Referer header."""
        host = urlsplit(self._address).hostname
        if not host:
            raise GatewayError(f"no host in gateway address '{self._address}'")

        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        if not infos:
            raise GatewayError(f"no addresses found for {host}")
        return infos[0][4][0]
