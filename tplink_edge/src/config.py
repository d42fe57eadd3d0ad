"""
Gateway collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All values come from environment variables or a ``.env`` file; defaults
match the factory settings of a TP-Link gateway.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class GatewaySettings(BaseSettings):
    """Configuration for the TP-Link gateway edge daemon.

    Attributes:
        gateway_address: Base URL of the gateway web UI.
        gateway_username: HTTP basic auth user.
        gateway_password: HTTP basic auth password.
        cache_file: Path of the JSON file holding counter overflow offsets.
            Empty disables persistence; offsets then reset on every restart.
        poll_interval_s: Seconds between collection cycles.
        request_timeout_s: Timeout per HTTP request to the gateway.
        health_path: Path of the JSON health file.
        debug_responses: Log raw page bodies at DEBUG level.
    """

    gateway_address: str = "http://192.168.0.1"
    gateway_username: str = "admin"
    gateway_password: str = "admin"
    cache_file: str = ""
    poll_interval_s: int = 10
    request_timeout_s: float = 10.0
    health_path: str = "/data/health.json"
    debug_responses: bool = False

    @field_validator("gateway_address")
    @classmethod
    def gateway_address_must_be_http_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"GATEWAY_ADDRESS must be an http(s) URL (got: '{v}')")
        return v.rstrip("/")

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least one second."""
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float) -> float:
        """Validate request timeout is strictly positive."""
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
