"""
Shared test fixtures for the gateway edge daemon tests.

Provides environment isolation for GatewaySettings and an OverflowCache
backed by an offset file in a temporary directory.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest
from tplink_edge.src.offset_file import OffsetFile
from tplink_edge.src.overflow_cache import OverflowCache

# All GatewaySettings environment variable names, used for cleanup.
_ALL_GATEWAY_ENV_VARS = (
    "GATEWAY_ADDRESS",
    "GATEWAY_USERNAME",
    "GATEWAY_PASSWORD",
    "CACHE_FILE",
    "POLL_INTERVAL_S",
    "REQUEST_TIMEOUT_S",
    "HEALTH_PATH",
    "DEBUG_RESPONSES",
)


@pytest.fixture(autouse=True)
def _clean_gateway_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all gateway env vars and isolate from .env files before each test."""
    for var in _ALL_GATEWAY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def offsets_path(tmp_path: Path) -> Path:
    """Path of a not-yet-existing offsets file."""
    return tmp_path / "offsets.json"


@pytest.fixture()
def cache(offsets_path: Path) -> OverflowCache:
    """An empty OverflowCache persisting to offsets_path."""
    return OverflowCache(OffsetFile(offsets_path))
