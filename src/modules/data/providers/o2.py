"""o2 Market Data Provider.

Fetches OHLCV bars from the public o2 REST API.
"""

from typing import Any

import httpx

from src.modules.data.protocols import ProviderError, RawBar
from src.shared.logger import get_logger

logger = get_logger(__name__)

_BAR_FIELDS = ("open", "high", "low", "close", "buy_volume", "sell_volume", "timestamp")


class O2Provider:
    """o2 bars provider.

    One GET per call, no retries. Transport retry policy belongs to the host.
    """

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        """Initialize O2Provider.

        Args:
            base_url: o2 API base URL (e.g., 'https://api.o2.app').
            timeout: Request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def name(self) -> str:
        """Provider name."""
        return "o2"

    def get_bars(
        self,
        market_id: str,
        resolution: str,
        count_back: int,
        from_ms: int,
        to_ms: int,
    ) -> list[RawBar]:
        """Fetch bars from `GET /v1/bars`.

        Args:
            market_id: o2 market identifier.
            resolution: Bar resolution (e.g., '5m').
            count_back: Number of bars to request.
            from_ms: Window start in epoch milliseconds.
            to_ms: Window end in epoch milliseconds.

        Returns:
            Raw bars, oldest first.

        Raises:
            ProviderError: If the API call fails or the payload is malformed.
        """
        logger.info(
            "Fetching bars from o2",
            extra={
                "market_id": market_id,
                "resolution": resolution,
                "count_back": count_back,
                "from_ms": from_ms,
                "to_ms": to_ms,
            },
        )

        url = f"{self._base_url}/v1/bars"
        params = {
            "market_id": market_id,
            "resolution": resolution,
            "count_back": count_back,
            "from": from_ms,
            "to": to_ms,
        }

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name,
                market_id,
                f"HTTP {e.response.status_code}: {e.response.text}",
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(self.name, market_id, str(e)) from e
        except ValueError as e:
            raise ProviderError(self.name, market_id, f"Invalid JSON: {e}") from e

        return self._normalize(market_id, data)

    def _normalize(self, market_id: str, data: Any) -> list[RawBar]:
        """Validate the response envelope and coerce bars to RawBar.

        Args:
            market_id: Market being fetched (for error messages).
            data: Decoded JSON body.

        Returns:
            List of raw bars.
        """
        if not isinstance(data, dict) or not isinstance(data.get("bars"), list):
            raise ProviderError(self.name, market_id, "Response has no 'bars' list")

        bars: list[RawBar] = []
        for item in data["bars"]:
            missing = [f for f in _BAR_FIELDS if f not in item]
            if missing:
                raise ProviderError(
                    self.name, market_id, f"Bar is missing fields: {missing}"
                )
            try:
                timestamp = int(item["timestamp"])
            except (TypeError, ValueError) as e:
                raise ProviderError(
                    self.name, market_id, f"Invalid bar timestamp: {item['timestamp']!r}"
                ) from e
            bars.append(
                RawBar(
                    open=str(item["open"]),
                    high=str(item["high"]),
                    low=str(item["low"]),
                    close=str(item["close"]),
                    buy_volume=str(item["buy_volume"]),
                    sell_volume=str(item["sell_volume"]),
                    timestamp=timestamp,
                )
            )
        return bars
