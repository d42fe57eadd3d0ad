"""
Edge daemon main loop for the TP-Link gateway counter pipeline.

Runs a single asyncio poll loop:
1. The GatewayCollector scrapes the gateway and returns metrics whose
   wrapping counters were corrected by the OverflowCache.
2. Metrics are written to stdout as InfluxDB line protocol, one line each,
   ready for a Telegraf ``execd`` input.
3. A HealthWriter records the poll timestamp and cache persistence state.

The loop is resilient: an exception in one iteration is logged and does not
stop the daemon. SIGTERM/SIGINT set a shared asyncio.Event; the loop finishes
its current iteration, the offset table gets one final dump, and the process
exits.

Structured JSON logging goes to stderr so stdout carries only metrics.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from tplink_edge.src.collector import GatewayCollector
    from tplink_edge.src.health import HealthWriter
    from tplink_edge.src.models import Metric
    from tplink_edge.src.overflow_cache import OverflowCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging() -> None:
    """Configure structured JSON logging for the edge daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def _masked_secret(value: str | None) -> str:
    """Return a short non-reversible fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup, excluding the gateway password.

    Args:
        settings: A GatewaySettings instance (or any object with the same attrs).
    """
    logger.info(
        "Edge daemon starting with config: "
        "gateway_address=%s, gateway_username=%s, cache_file=%s, "
        "poll_interval_s=%s, request_timeout_s=%s, health_path=%s, "
        "debug_responses=%s, gateway_password_masked=%s",
        settings.gateway_address,  # type: ignore[attr-defined]
        settings.gateway_username,  # type: ignore[attr-defined]
        settings.cache_file or "<disabled>",  # type: ignore[attr-defined]
        settings.poll_interval_s,  # type: ignore[attr-defined]
        settings.request_timeout_s,  # type: ignore[attr-defined]
        settings.health_path,  # type: ignore[attr-defined]
        settings.debug_responses,  # type: ignore[attr-defined]
        _masked_secret(settings.gateway_password),  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Single-iteration functions (easily testable)
# ---------------------------------------------------------------------------


def _emit(metrics: list[Metric], out: TextIO) -> None:
    """Write metrics as line protocol and flush."""
    for metric in metrics:
        out.write(metric.to_line_protocol() + "\n")
    out.flush()


async def _poll_once(
    *,
    collector: GatewayCollector,
    cache: OverflowCache,
    out: TextIO,
    health: HealthWriter | None,
) -> None:
    """Execute a single gather-emit cycle.

    Catches all exceptions so that the caller's loop is never broken.
    After each attempt the health writer is updated with the cache state
    and a fresh poll timestamp.

    Args:
        collector: The gateway collector.
        cache: The overflow cache shared with the collector.
        out: Stream receiving line protocol.
        health: HealthWriter instance, or None to skip health writes.
    """
    try:
        metrics = await collector.gather()

        if metrics is not None:
            _emit(metrics, out)
            logger.info("Poll success: emitted %d metric(s)", len(metrics))
        else:
            logger.warning("Collector returned None, nothing emitted")
    except Exception:
        logger.error("Poll cycle error", exc_info=True)

    if health is not None:
        try:
            health.set_cache_state(cache.tracked_counters, cache.persistence_ok)
            health.record_poll()
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)


async def run_loop(
    *,
    collector: GatewayCollector,
    cache: OverflowCache,
    poll_interval_s: float,
    shutdown_event: asyncio.Event,
    out: TextIO,
    health: HealthWriter | None = None,
) -> None:
    """Run the poll loop until shutdown_event is set, then dump offsets.

    Args:
        collector: The gateway collector.
        cache: The overflow cache shared with the collector.
        poll_interval_s: Seconds between poll cycles.
        shutdown_event: Event to signal graceful shutdown.
        out: Stream receiving line protocol.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Poll loop started (interval=%ss)", poll_interval_s)
    while not shutdown_event.is_set():
        await _poll_once(collector=collector, cache=cache, out=out, health=health)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=poll_interval_s,
            )
    logger.info("Poll loop stopped")

    logger.info("Dumping overflow offsets before exit")
    cache.dump()
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run the loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    configure_logging()

    from tplink_edge.src.collector import GatewayCollector
    from tplink_edge.src.config import GatewaySettings
    from tplink_edge.src.health import HealthWriter
    from tplink_edge.src.offset_file import OffsetFile
    from tplink_edge.src.overflow_cache import OverflowCache

    settings = GatewaySettings()
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    cache = OverflowCache(OffsetFile(settings.cache_file) if settings.cache_file else None)
    cache.load()

    collector = GatewayCollector(
        address=settings.gateway_address,
        username=settings.gateway_username,
        password=settings.gateway_password,
        cache=cache,
        timeout_s=settings.request_timeout_s,
        debug=settings.debug_responses,
    )

    await run_loop(
        collector=collector,
        cache=cache,
        poll_interval_s=settings.poll_interval_s,
        shutdown_event=shutdown_event,
        out=sys.stdout,
        health=HealthWriter(settings.health_path),
    )


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the edge daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
