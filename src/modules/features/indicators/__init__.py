"""Technical indicators for the indicator calculator.

All indicators are pure functions: Series in, Series (or DataFrame for
multi-line indicators) out. No state, no side effects.
"""

from src.modules.features.indicators.momentum import cci, rsi, stochastic
from src.modules.features.indicators.trend import (
    adx,
    directional_indicators,
    ema,
    macd,
    sma,
    true_range,
)
from src.modules.features.indicators.volatility import atr, bollinger_bands
from src.modules.features.indicators.volume import mfi, obv, vwap

__all__ = [
    "sma",
    "ema",
    "macd",
    "adx",
    "directional_indicators",
    "true_range",
    "rsi",
    "stochastic",
    "cci",
    "atr",
    "bollinger_bands",
    "obv",
    "vwap",
    "mfi",
]
