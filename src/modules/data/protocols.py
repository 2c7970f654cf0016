"""Data Provider Protocols.

Defines the bar record shape and the interface for market data providers.
"""

from typing import Protocol, TypedDict


class RawBar(TypedDict):
    """One OHLCV candle as returned by the o2 bars endpoint.

    Prices and volumes are fixed-point decimal strings scaled by 10^decimals
    (9 by default). The timestamp is the bar open time in milliseconds.
    """

    open: str
    high: str
    low: str
    close: str
    buy_volume: str
    sell_volume: str
    timestamp: int


class BarDataProvider(Protocol):
    """Protocol for bar data providers.

    Implementations return bars ordered by non-decreasing timestamp.
    """

    @property
    def name(self) -> str:
        """Provider name for logging and error messages."""
        ...

    def get_bars(
        self,
        market_id: str,
        resolution: str,
        count_back: int,
        from_ms: int,
        to_ms: int,
    ) -> list[RawBar]:
        """Fetch OHLCV bars for a market.

        Args:
            market_id: o2 market identifier.
            resolution: Bar resolution (e.g., '5m', '1h').
            count_back: Number of bars requested, counted back from `to_ms`.
            from_ms: Window start in epoch milliseconds.
            to_ms: Window end in epoch milliseconds.

        Returns:
            List of raw bars, oldest first. May be empty.

        Raises:
            ProviderError: If the provider fails to fetch data.
        """
        ...


class ProviderError(Exception):
    """Exception raised when a provider fails to fetch or decode bars."""

    code = "PROVIDER_ERROR"

    def __init__(self, provider: str, market_id: str, message: str) -> None:
        """Initialize ProviderError.

        Args:
            provider: Name of the failing provider.
            market_id: Market that was being fetched.
            message: Error description.
        """
        self.provider = provider
        self.market_id = market_id
        super().__init__(f"[{provider}] Failed to fetch {market_id}: {message}")
