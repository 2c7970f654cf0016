"""Indicator Calculator - per-indicator snapshot and series computation.

Dispatches a resolved IndicatorSpec to its handler through a static table,
then reduces the handler's output series to value / prev / delta. Numeric
failures are captured in the result instead of propagating.
"""

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, ClassVar, NamedTuple, Union

import pandas as pd

from src.modules.features.bars import PriceSource, price_series
from src.modules.features.indicators.momentum import cci, rsi, stochastic
from src.modules.features.indicators.trend import adx, directional_indicators, ema, macd, sma
from src.modules.features.indicators.volatility import atr, bollinger_bands
from src.modules.features.indicators.volume import mfi, obv, vwap
from src.modules.features.lookback import (
    DI_PERIOD,
    STOCH_PERIOD,
    IndicatorFamily,
    IndicatorSpec,
)
from src.shared.errors import IndicatorComputationError
from src.shared.logger import get_logger

logger = get_logger(__name__)

MACD_FAST, MACD_SLOW, MACD_SIGNAL = 12, 26, 9
BBANDS_PERIOD, BBANDS_STD = 20, 2.0
STOCH_SLOW_K, STOCH_SLOW_D = 3, 3


# --- Value variants ---


@dataclass(frozen=True)
class MacdValue:
    macd: float
    signal: float
    histogram: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class BollingerValue:
    """Bollinger point. %B is None when the bands have zero width."""

    upper: float
    middle: float
    lower: float
    percent_b: float | None
    bandwidth: float

    NULLABLE: ClassVar[tuple[str, ...]] = ("percent_b",)

    def to_dict(self) -> dict[str, float | None]:
        return {
            "upper": self.upper,
            "middle": self.middle,
            "lower": self.lower,
            "percentB": self.percent_b,
            "bandwidth": self.bandwidth,
        }


@dataclass(frozen=True)
class StochValue:
    k: float
    d: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


StructuredValue = Union[MacdValue, BollingerValue, StochValue]
IndicatorValue = Union[float, StructuredValue]


@dataclass
class IndicatorResult:
    """Latest output of one indicator.

    Exactly one of `value` or `error` is meaningful; `meta` is always set.
    """

    value: IndicatorValue | None
    meta: dict[str, Any]
    prev: IndicatorValue | None = None
    delta: IndicatorValue | None = None
    levels: dict[str, float] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the snapshot response shape."""
        out: dict[str, Any]
        if self.error is not None:
            out = {"value": None, "error": self.error}
        else:
            out = {
                "value": _serialize(self.value),
                "prev": _serialize(self.prev),
                "delta": _serialize(self.delta),
            }
        if self.levels:
            out["levels"] = dict(self.levels)
        out["meta"] = dict(self.meta)
        return out


def _serialize(value: IndicatorValue | None) -> Any:
    if value is None or isinstance(value, float):
        return value
    return value.to_dict()


# --- Handlers ---


class Handler(NamedTuple):
    """Dispatch entry for one family."""

    compute: Callable[[IndicatorSpec, pd.DataFrame, pd.Series], pd.Series | pd.DataFrame]
    value_type: type | None = None
    levels: dict[str, float] | None = None
    params: Callable[[IndicatorSpec], dict[str, Any]] = lambda spec: {"period": spec.period}


def _hlc(bars: pd.DataFrame) -> tuple[pd.Series, pd.Series, pd.Series]:
    return bars["high"], bars["low"], bars["close"]


HANDLERS: dict[IndicatorFamily, Handler] = {
    IndicatorFamily.SMA: Handler(lambda s, b, p: sma(p, s.period)),
    IndicatorFamily.EMA: Handler(lambda s, b, p: ema(p, s.period)),
    IndicatorFamily.RSI: Handler(
        lambda s, b, p: rsi(p, s.period),
        levels={"overbought": 70, "oversold": 30},
    ),
    IndicatorFamily.MACD: Handler(
        lambda s, b, p: macd(p, MACD_FAST, MACD_SLOW, MACD_SIGNAL),
        value_type=MacdValue,
        params=lambda s: {"fast": MACD_FAST, "slow": MACD_SLOW, "signal": MACD_SIGNAL},
    ),
    IndicatorFamily.BBANDS: Handler(
        lambda s, b, p: bollinger_bands(p, BBANDS_PERIOD, BBANDS_STD, close=b["close"]),
        value_type=BollingerValue,
        params=lambda s: {"period": BBANDS_PERIOD, "stdDev": BBANDS_STD},
    ),
    IndicatorFamily.ATR: Handler(lambda s, b, p: atr(*_hlc(b), period=s.period)),
    IndicatorFamily.ADX: Handler(
        lambda s, b, p: adx(*_hlc(b), period=s.period),
        levels={"strong": 25, "weak": 15},
    ),
    IndicatorFamily.PLUS_DI: Handler(
        lambda s, b, p: directional_indicators(*_hlc(b), period=DI_PERIOD)["plus_di"],
        params=lambda s: {"period": DI_PERIOD},
    ),
    IndicatorFamily.MINUS_DI: Handler(
        lambda s, b, p: directional_indicators(*_hlc(b), period=DI_PERIOD)["minus_di"],
        params=lambda s: {"period": DI_PERIOD},
    ),
    IndicatorFamily.VWAP: Handler(
        lambda s, b, p: vwap(*_hlc(b), b["volume"]),
        params=lambda s: {"anchor": "window"},
    ),
    IndicatorFamily.CCI: Handler(
        lambda s, b, p: cci(*_hlc(b), period=s.period),
        levels={"overbought": 100, "oversold": -100},
    ),
    IndicatorFamily.STOCH: Handler(
        lambda s, b, p: stochastic(*_hlc(b), STOCH_PERIOD, STOCH_SLOW_K, STOCH_SLOW_D),
        value_type=StochValue,
        levels={"overbought": 80, "oversold": 20},
        params=lambda s: {"fastK": STOCH_PERIOD, "slowK": STOCH_SLOW_K, "slowD": STOCH_SLOW_D},
    ),
    IndicatorFamily.MFI: Handler(
        lambda s, b, p: mfi(*_hlc(b), b["volume"], period=s.period),
        levels={"overbought": 80, "oversold": 20},
    ),
    IndicatorFamily.OBV: Handler(
        lambda s, b, p: obv(b["close"], b["volume"]),
        params=lambda s: {},
    ),
}


# --- Public API ---


def indicator_series(
    spec: IndicatorSpec,
    bars: pd.DataFrame,
    price_source: PriceSource = "close",
) -> pd.Series | pd.DataFrame | None:
    """Compute the full output series of an indicator.

    Args:
        spec: Resolved indicator.
        bars: Decoded OHLCV DataFrame.
        price_source: Price series for price-based indicators.

    Returns:
        Series (scalar families) or DataFrame (MACD, Bollinger, Stochastic)
        aligned with `bars`, or None if the family is unknown or there are
        fewer than `spec.required_bars` bars.

    Raises:
        ValueError: If an indicator function rejects its input.
    """
    handler = HANDLERS.get(spec.family)
    if handler is None or len(bars) < spec.required_bars:
        return None
    return handler.compute(spec, bars, price_series(bars, price_source))


def calculate_indicator(
    spec: IndicatorSpec,
    bars: pd.DataFrame,
    price_source: PriceSource = "close",
) -> IndicatorResult | None:
    """Compute the latest value, previous value and delta of an indicator.

    Args:
        spec: Resolved indicator.
        bars: Decoded OHLCV DataFrame.
        price_source: Price series for price-based indicators.

    Returns:
        IndicatorResult, or None for unknown identifiers and insufficient
        bars. Computation failures are returned as a result with `error`.
    """
    handler = HANDLERS.get(spec.family)
    if handler is None or len(bars) < spec.required_bars:
        return None

    levels = dict(handler.levels) if handler.levels else None
    meta: dict[str, Any] = {
        "requiredBars": spec.required_bars,
        "providedBars": len(bars),
        "warmupBars": spec.warmup_bars,
        **handler.params(spec),
    }

    try:
        output = indicator_series(spec, bars, price_source)
        value, prev = _latest_points(spec, output, handler.value_type)
    except (IndicatorComputationError, ValueError, ArithmeticError) as e:
        logger.warning(
            f"Indicator {spec.name} failed: {e}",
            extra={"indicator": spec.name, "bars": len(bars)},
        )
        return IndicatorResult(value=None, error=str(e), levels=levels, meta=meta)

    return IndicatorResult(
        value=value,
        prev=prev,
        delta=_delta(value, prev),
        levels=levels,
        meta=meta,
    )


# --- Reduction helpers ---


def _point(output: pd.Series | pd.DataFrame, pos: int, value_type: type | None) -> IndicatorValue | None:
    """Read one output row; None if any required field is not finite."""
    if value_type is None:
        raw = float(output.iloc[pos])
        return raw if math.isfinite(raw) else None

    row = output.iloc[pos]
    nullable = getattr(value_type, "NULLABLE", ())
    values: dict[str, float | None] = {}
    for f in fields(value_type):
        raw = float(row[f.name])
        if math.isfinite(raw):
            values[f.name] = raw
        elif f.name in nullable:
            values[f.name] = None
        else:
            return None
    return value_type(**values)


def _latest_points(
    spec: IndicatorSpec,
    output: pd.Series | pd.DataFrame | None,
    value_type: type | None,
) -> tuple[IndicatorValue, IndicatorValue | None]:
    if output is None or len(output) == 0:
        raise IndicatorComputationError(spec.name, "no output")

    value = _point(output, -1, value_type)
    if value is None:
        raise IndicatorComputationError(
            spec.name, f"non-finite value at bar {len(output) - 1} of {len(output)}"
        )

    prev = _point(output, -2, value_type) if len(output) > 1 else None
    return value, prev


def _delta(value: IndicatorValue, prev: IndicatorValue | None) -> IndicatorValue | None:
    if prev is None:
        return None
    if isinstance(value, float):
        return value - prev  # type: ignore[operator]
    return type(value)(
        **{f.name: _sub(getattr(value, f.name), getattr(prev, f.name)) for f in fields(value)}
    )


def _sub(a: float | None, b: float | None) -> float | None:
    if a is None or b is None:
        return None
    return a - b
