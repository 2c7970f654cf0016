"""Configuration loader for o2-indicators.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass

MAINNET_BASE_URL = "https://api.o2.app"
TESTNET_BASE_URL = "https://api.devnet.o2.app"


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        api_base_url: Base URL of the o2 REST API (no trailing slash).
        price_decimals: Fixed-point exponent of bar prices.
        volume_decimals: Fixed-point exponent of bar volumes.
        http_timeout: Timeout in seconds for the bar fetch.
        environment: Current environment (dev/prod).
    """

    api_base_url: str
    price_decimals: int
    volume_decimals: int
    http_timeout: float
    environment: str


def resolve_api_base_url(override: str | None = None) -> str:
    """Pick the API base URL from an explicit override or the environment.

    Args:
        override: Caller-supplied base URL, wins when non-blank.

    Returns:
        Base URL without trailing slashes.
    """
    for candidate in (override, os.getenv("O2_API_BASE_URL")):
        if candidate and candidate.strip():
            return candidate.strip().rstrip("/")

    network = os.getenv("O2_NETWORK", "").strip().lower()
    if network == "testnet":
        return TESTNET_BASE_URL
    return MAINNET_BASE_URL


def load_config() -> Config:
    """Load configuration from environment variables.

    Returns:
        Config object with all settings.

    Raises:
        ValueError: If a numeric environment variable is malformed.
    """
    return Config(
        api_base_url=resolve_api_base_url(),
        price_decimals=int(os.getenv("O2_PRICE_DECIMALS", "9")),
        volume_decimals=int(os.getenv("O2_VOLUME_DECIMALS", "9")),
        http_timeout=float(os.getenv("O2_HTTP_TIMEOUT", "30")),
        environment=os.getenv("ENVIRONMENT", "dev"),
    )
