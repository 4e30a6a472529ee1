"""
Configuration Management for the PiAlert Relay Controller

All settings come from environment variables (a local .env file is loaded
first by the CLI). Field names are the Python attribute names; the alias is
the environment variable.

Environment Variables:

    Alert API:
        PIALERT_API_URL      - Alert status endpoint (default: http://localhost:8000/api/v1/alert-status)
        PIALERT_API_KEY      - API key sent as x-api-key (required, startup fails without it)
        REQUEST_TIMEOUT      - HTTP timeout in milliseconds (default: 5000)

    Control Loop:
        POLL_INTERVAL        - Milliseconds between polls (default: 30000)
        HISTORY_SIZE         - Number of poll records kept in memory (default: 50)

    Relay Output:
        RELAY_PIN            - BCM GPIO pin wired to the relay (default: 26)
        RELAY_ACTIVE_HIGH    - Drive the pin high for ON "yes"/"no" (default: "yes")
        RELAY_SIMULATE       - Use an in-memory relay instead of GPIO "yes"/"no" (default: "no")

    Server:
        RELAY_BIND_ADDRESS   - Control surface bind address (default: "0.0.0.0")
        RELAY_PORT           - Control surface port (default: 5000)
        RELAY_DEBUG          - Enable debug logging "yes"/"no" (default: "no")

Accessing Configuration:

    from pialert_relay.config import load_settings

    settings = load_settings()      # raises ConfigurationError if PIALERT_API_KEY is unset
    interval = settings.poll_interval_seconds
"""
import logging
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from pialert_relay.client import DEFAULT_API_URL
from pialert_relay.devices import DEFAULT_RELAY_PIN
from pialert_relay.exceptions import ConfigurationError
from pialert_relay.history import DEFAULT_CAPACITY

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Relay controller settings."""

    api_url: str = Field(default=DEFAULT_API_URL, alias="PIALERT_API_URL")
    api_key: Optional[str] = Field(default=None, alias="PIALERT_API_KEY")
    request_timeout_ms: int = Field(default=5000, gt=0, alias="REQUEST_TIMEOUT")

    poll_interval_ms: int = Field(default=30000, gt=0, alias="POLL_INTERVAL")
    history_size: int = Field(default=DEFAULT_CAPACITY, ge=1, alias="HISTORY_SIZE")

    relay_pin: int = Field(default=DEFAULT_RELAY_PIN, alias="RELAY_PIN")
    relay_active_high: bool = Field(default=True, alias="RELAY_ACTIVE_HIGH")
    simulate: bool = Field(default=False, alias="RELAY_SIMULATE")

    server_host: str = Field(default="0.0.0.0", alias="RELAY_BIND_ADDRESS")
    server_port: int = Field(default=5000, alias="RELAY_PORT")
    debug: bool = Field(default=False, alias="RELAY_DEBUG")

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "populate_by_name": True,
    }

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000.0


def load_settings(**overrides) -> Settings:
    """Build Settings from the environment and enforce the required credential."""
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    if not settings.api_key:
        raise ConfigurationError("PIALERT_API_KEY environment variable is required")
    return settings
