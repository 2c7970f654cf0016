"""Indicator request model.

Holds the validated parameters of one indicator call and parses them from
the camelCase payload an agent sends.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from src.shared.errors import RequestError

RESOLUTIONS = ("1m", "5m", "15m", "30m", "1h", "4h", "1d", "1w")
MODES = ("snapshot", "window")
PERIODS = ("1h", "24h", "7d", "30d")
PRICE_SOURCES = ("close", "hlc3", "ohlc4")
VWAP_ANCHORS = ("session", "window")

MAX_INDICATORS = 20
MAX_WINDOW_SIZE = 500
DEFAULT_WINDOW_SIZE = 100


@dataclass(frozen=True)
class IndicatorRequest:
    """Parameters of one indicator computation.

    Attributes:
        market_id: o2 market identifier.
        indicators: Requested indicator identifiers (raw, not normalized).
        resolution: Bar resolution.
        mode: 'snapshot' (latest values) or 'window' (arrays).
        period: Preset time span ending now, used unless from/to are set.
        from_ms: Explicit window start (epoch ms).
        to_ms: Explicit window end (epoch ms).
        window_size: Points returned in window mode.
        price_source: Price series for price-based indicators.
        vwap_anchor: Requested VWAP anchoring.
        strict: Fail the whole request on any missing indicator.
        as_of: Historical replay timestamp overriding `to_ms`.
        micro_summary: Include the regime summary in snapshots.
        include_incomplete_last_bar: Keep a still-forming last bar.
    """

    market_id: str
    indicators: list[str] = field(default_factory=list)
    resolution: str = "5m"
    mode: str = "snapshot"
    period: str = "24h"
    from_ms: int | None = None
    to_ms: int | None = None
    window_size: int = DEFAULT_WINDOW_SIZE
    price_source: str = "close"
    vwap_anchor: str = "window"
    strict: bool = False
    as_of: int | None = None
    micro_summary: bool = False
    include_incomplete_last_bar: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "IndicatorRequest":
        """Build a request from a camelCase payload.

        Args:
            payload: Tool/event arguments (marketId, indicators, resolution, ...).

        Returns:
            Validated IndicatorRequest. The indicator count limit is
            enforced by the pipeline, not here.

        Raises:
            RequestError: If a field is missing or out of range.
        """
        market_id = payload.get("marketId")
        if not isinstance(market_id, str) or not market_id:
            raise RequestError("marketId is required")

        indicators = payload.get("indicators")
        if not isinstance(indicators, list) or not all(isinstance(i, str) for i in indicators):
            raise RequestError("indicators must be a list of strings")

        resolution = _choice(payload, "resolution", RESOLUTIONS, None)
        window_size = payload.get("windowSize", DEFAULT_WINDOW_SIZE)
        if (
            isinstance(window_size, bool)
            or not isinstance(window_size, int)
            or not 1 <= window_size <= MAX_WINDOW_SIZE
        ):
            raise RequestError(f"windowSize must be an integer in 1..{MAX_WINDOW_SIZE}")

        return cls(
            market_id=market_id,
            indicators=list(indicators),
            resolution=resolution,
            mode=_choice(payload, "mode", MODES, "snapshot"),
            period=_choice(payload, "period", PERIODS, "24h"),
            from_ms=parse_timestamp(payload.get("from"), "from"),
            to_ms=parse_timestamp(payload.get("to"), "to"),
            window_size=window_size,
            price_source=_choice(payload, "priceSource", PRICE_SOURCES, "close"),
            vwap_anchor=_choice(payload, "vwapAnchor", VWAP_ANCHORS, "window"),
            strict=_flag(payload, "strict", False),
            as_of=parse_timestamp(payload.get("asOf"), "asOf"),
            micro_summary=_flag(payload, "microSummary", False),
            include_incomplete_last_bar=_flag(payload, "includeIncompleteLastBar", False),
        )


def _flag(payload: Mapping[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise RequestError(f"{key} must be a boolean; got {value!r}")
    return value


def _choice(
    payload: Mapping[str, Any], key: str, allowed: tuple[str, ...], default: str | None
) -> str:
    value = payload.get(key, default)
    if value not in allowed:
        raise RequestError(f"{key} must be one of {', '.join(allowed)}; got {value!r}")
    return value


def parse_timestamp(value: Any, name: str) -> int | None:
    """Accept an epoch-ms integer or a numeric string.

    Args:
        value: Raw payload value (None means absent).
        name: Field name for error messages.

    Returns:
        Timestamp in ms, or None.

    Raises:
        RequestError: If the value is not an integer timestamp.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise RequestError(f"{name} must be a timestamp in ms")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise RequestError(f"{name} must be a timestamp in ms; got {value!r}") from e
