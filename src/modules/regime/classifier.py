"""Regime Classifier - rule-based market micro summary.

Aggregates already-computed indicators into four categorical axes:
trend bias, trend strength, momentum and volatility. Every rule that fires
appends a tag to `inputs` so the caller can see why.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from src.modules.features.calculator import (
    BollingerValue,
    IndicatorResult,
    MacdValue,
)

# ADX thresholds
ADX_STRONG = 25.0
ADX_MODERATE = 15.0

# RSI midline separating positive and negative momentum
RSI_MIDLINE = 50.0

# Volatility thresholds: ATR as % of price, Bollinger bandwidth in %
ATR_PCT_LOW = 1.0
ATR_PCT_HIGH = 3.0
BANDWIDTH_LOW = 2.0
BANDWIDTH_HIGH = 5.0


class TrendBias(Enum):
    """Direction of the prevailing trend."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class TrendStrength(Enum):
    """Strength of the prevailing trend (ADX)."""

    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class Momentum(Enum):
    """Momentum state from RSI and the MACD histogram."""

    POSITIVE_STRONG = "positive_strong"
    POSITIVE_WEAKENING = "positive_weakening"
    NEGATIVE_STRONG = "negative_strong"
    NEGATIVE_WEAKENING = "negative_weakening"
    NEUTRAL = "neutral"


class Volatility(Enum):
    """Volatility regime from ATR% and Bollinger bandwidth."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass
class MicroSummary:
    """Categorical market regime with the rule tags that produced it."""

    trend_bias: TrendBias = TrendBias.NEUTRAL
    trend_strength: TrendStrength = TrendStrength.WEAK
    momentum: Momentum = Momentum.NEUTRAL
    volatility: Volatility = Volatility.MODERATE
    inputs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trendBias": self.trend_bias.value,
            "trendStrength": self.trend_strength.value,
            "momentum": self.momentum.value,
            "volatility": self.volatility.value,
            "inputs": list(self.inputs),
        }


def _value(indicators: Mapping[str, IndicatorResult | None], key: str) -> Any:
    result = indicators.get(key)
    if result is None or not result.ok:
        return None
    return result.value


def _classify_trend_bias(
    indicators: Mapping[str, IndicatorResult | None],
    price: float,
    summary: MicroSummary,
) -> None:
    sma20 = _value(indicators, "sma_20")
    sma50 = _value(indicators, "sma_50")
    if isinstance(sma20, float) and isinstance(sma50, float):
        if price > sma20 > sma50:
            summary.trend_bias = TrendBias.BULLISH
            summary.inputs.append("price>sma20>sma50")
        elif price < sma20 < sma50:
            summary.trend_bias = TrendBias.BEARISH
            summary.inputs.append("price<sma20<sma50")

    plus = _value(indicators, "plus_di")
    minus = _value(indicators, "minus_di")
    if not (isinstance(plus, float) and isinstance(minus, float)):
        return

    # DI can move the bias one step, never straight across
    if plus > minus:
        if summary.trend_bias is TrendBias.BEARISH:
            summary.trend_bias = TrendBias.NEUTRAL
        elif summary.trend_bias is TrendBias.NEUTRAL:
            summary.trend_bias = TrendBias.BULLISH
        summary.inputs.append("+di>-di")
    else:
        if summary.trend_bias is TrendBias.BULLISH:
            summary.trend_bias = TrendBias.NEUTRAL
        elif summary.trend_bias is TrendBias.NEUTRAL:
            summary.trend_bias = TrendBias.BEARISH
        summary.inputs.append("+di<-di")


def _classify_trend_strength(
    indicators: Mapping[str, IndicatorResult | None],
    summary: MicroSummary,
) -> None:
    adx = _value(indicators, "adx_14")
    if not isinstance(adx, float):
        return

    if adx > ADX_STRONG:
        summary.trend_strength = TrendStrength.STRONG
        summary.inputs.append("adx>25")
    elif adx > ADX_MODERATE:
        summary.trend_strength = TrendStrength.MODERATE
        summary.inputs.append("adx>15")
    else:
        summary.trend_strength = TrendStrength.WEAK
        summary.inputs.append("adx<15")


def _classify_momentum(
    indicators: Mapping[str, IndicatorResult | None],
    summary: MicroSummary,
) -> None:
    rsi = _value(indicators, "rsi_14")
    macd = _value(indicators, "macd")
    if not (isinstance(rsi, float) and isinstance(macd, MacdValue)):
        return

    macd_delta = indicators["macd"].delta  # type: ignore[union-attr]
    slope = macd_delta.histogram if isinstance(macd_delta, MacdValue) else 0.0
    hist = macd.histogram

    if rsi > RSI_MIDLINE and hist > 0:
        rising = slope > 0
        summary.momentum = Momentum.POSITIVE_STRONG if rising else Momentum.POSITIVE_WEAKENING
        summary.inputs.append("macd_hist>0_rising" if rising else "macd_hist>0_falling")
    elif rsi < RSI_MIDLINE and hist < 0:
        falling = slope < 0
        summary.momentum = Momentum.NEGATIVE_STRONG if falling else Momentum.NEGATIVE_WEAKENING
        summary.inputs.append("macd_hist<0_falling" if falling else "macd_hist<0_rising")


def _classify_volatility(
    indicators: Mapping[str, IndicatorResult | None],
    price: float,
    summary: MicroSummary,
) -> None:
    atr = _value(indicators, "atr_14")
    bbands = _value(indicators, "bbands")
    if not (isinstance(atr, float) and isinstance(bbands, BollingerValue)) or price == 0:
        return

    atr_pct = atr / price * 100.0
    bandwidth = bbands.bandwidth

    if atr_pct < ATR_PCT_LOW and bandwidth < BANDWIDTH_LOW:
        summary.volatility = Volatility.LOW
        summary.inputs.append("low_volatility")
    elif atr_pct > ATR_PCT_HIGH or bandwidth > BANDWIDTH_HIGH:
        summary.volatility = Volatility.HIGH
        summary.inputs.append("high_volatility")
    else:
        summary.volatility = Volatility.MODERATE


def classify_regime(
    indicators: Mapping[str, IndicatorResult | None],
    current_price: float,
) -> MicroSummary:
    """Build the micro summary from calculated indicators.

    Reads sma_20, sma_50, plus_di, minus_di, adx_14, rsi_14, macd, atr_14
    and bbands. Axes whose inputs are missing or failed keep their
    defaults (neutral, weak, neutral, moderate).

    Args:
        indicators: Calculated results keyed by normalized identifier.
        current_price: Last decoded close.

    Returns:
        MicroSummary.
    """
    summary = MicroSummary()
    _classify_trend_bias(indicators, current_price, summary)
    _classify_trend_strength(indicators, summary)
    _classify_momentum(indicators, summary)
    _classify_volatility(indicators, current_price, summary)
    return summary
