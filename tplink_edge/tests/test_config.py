"""
Unit tests for gateway daemon configuration.

Tests verify:
- Defaults match a factory-configured TP-Link gateway.
- Environment variables override defaults.
- Invalid addresses, poll intervals and timeouts are rejected.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError
from tplink_edge.src.config import GatewaySettings


class TestDefaults:
    """GatewaySettings works with no environment at all."""

    def test_factory_defaults(self) -> None:
        """Address, credentials and persistence have sensible defaults."""
        settings = GatewaySettings()

        assert settings.gateway_address == "http://192.168.0.1"
        assert settings.gateway_username == "admin"
        assert settings.gateway_password == "admin"
        assert settings.cache_file == ""
        assert settings.poll_interval_s == 10
        assert settings.request_timeout_s == 10.0
        assert settings.health_path == "/data/health.json"
        assert settings.debug_responses is False


class TestEnvOverrides:
    """Environment variables populate the settings."""

    def test_reads_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Every field can be set from the environment."""
        env = {
            "GATEWAY_ADDRESS": "https://router.lan/",
            "GATEWAY_USERNAME": "ops",
            "GATEWAY_PASSWORD": "s3cret",
            "CACHE_FILE": "/var/lib/tplink/offsets.json",
            "POLL_INTERVAL_S": "30",
            "REQUEST_TIMEOUT_S": "2.5",
            "HEALTH_PATH": "/tmp/health.json",
            "DEBUG_RESPONSES": "true",
        }
        for key, value in env.items():
            monkeypatch.setenv(key, value)

        settings = GatewaySettings()

        assert settings.gateway_address == "https://router.lan"
        assert settings.gateway_username == "ops"
        assert settings.gateway_password == "s3cret"
        assert settings.cache_file == "/var/lib/tplink/offsets.json"
        assert settings.poll_interval_s == 30
        assert settings.request_timeout_s == 2.5
        assert settings.health_path == "/tmp/health.json"
        assert settings.debug_responses is True

    def test_reads_dotenv_file(self, tmp_path: Path) -> None:
        """A .env file in the working directory is honoured."""
        (tmp_path / ".env").write_text("CACHE_FILE=/data/offsets.json\n")

        assert GatewaySettings().cache_file == "/data/offsets.json"


class TestValidation:
    """Invalid values fail at startup."""

    @pytest.mark.parametrize("address", ["192.168.0.1", "ftp://192.168.0.1", ""])
    def test_address_must_be_http_url(
        self, monkeypatch: pytest.MonkeyPatch, address: str
    ) -> None:
        """Addresses without an http(s) scheme are rejected."""
        monkeypatch.setenv("GATEWAY_ADDRESS", address)

        with pytest.raises(ValidationError, match="GATEWAY_ADDRESS"):
            GatewaySettings()

    def test_poll_interval_must_be_positive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """POLL_INTERVAL_S=0 is rejected."""
        monkeypatch.setenv("POLL_INTERVAL_S", "0")

        with pytest.raises(ValidationError, match="POLL_INTERVAL_S"):
            GatewaySettings()

    def test_request_timeout_must_be_positive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """REQUEST_TIMEOUT_S=0 is rejected."""
        monkeypatch.setenv("REQUEST_TIMEOUT_S", "0")

        with pytest.raises(ValidationError, match="REQUEST_TIMEOUT_S"):
            GatewaySettings()
