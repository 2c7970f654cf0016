"""Indicator features - bar decoding, lookback resolution and calculation.

Turns raw o2 bars into indicator results the pipeline formats.
"""

from src.modules.features.calculator import IndicatorResult, calculate_indicator
from src.modules.features.lookback import IndicatorSpec, resolve_indicator

__all__ = ["IndicatorResult", "IndicatorSpec", "calculate_indicator", "resolve_indicator"]
