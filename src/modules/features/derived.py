"""Derived Field Engine - cross-indicator distances in ATR units."""

import math
from typing import Mapping

from src.modules.features.calculator import IndicatorResult

ATR_KEY = "atr_14"

# derived field -> indicator measured against
DISTANCE_FIELDS = {
    "dist_sma20_atr": "sma_20",
    "dist_vwap_atr": "vwap",
}


def _scalar(result: IndicatorResult | None) -> float | None:
    if result is None or not result.ok or not isinstance(result.value, float):
        return None
    return result.value if math.isfinite(result.value) else None


def compute_derived_fields(
    indicators: Mapping[str, IndicatorResult | None],
    current_price: float,
) -> dict[str, float]:
    """Distance of the current price from SMA20 and VWAP, in ATR(14) units.

    A field is omitted when its inputs were not requested, failed, or
    ATR is not positive.

    Args:
        indicators: Calculated results keyed by normalized identifier.
        current_price: Last decoded close.

    Returns:
        Mapping of derived field name to value.
    """
    derived: dict[str, float] = {}

    atr_value = _scalar(indicators.get(ATR_KEY))
    if atr_value is None or atr_value <= 0:
        return derived

    for name, source in DISTANCE_FIELDS.items():
        reference = _scalar(indicators.get(source))
        if reference is not None:
            derived[name] = (current_price - reference) / atr_value

    return derived
