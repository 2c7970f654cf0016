"""Lookback/Warmup Resolver.

Maps an indicator identifier (e.g. 'RSI-14', 'sma50', 'macd') to its
family, period, the minimum bar count it needs, and the warm-up length
before its first meaningful value.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class IndicatorFamily(Enum):
    """Supported indicator families."""

    SMA = "sma"
    EMA = "ema"
    RSI = "rsi"
    MACD = "macd"
    BBANDS = "bbands"
    ATR = "atr"
    ADX = "adx"
    PLUS_DI = "plus_di"
    MINUS_DI = "minus_di"
    VWAP = "vwap"
    CCI = "cci"
    STOCH = "stoch"
    MFI = "mfi"
    OBV = "obv"
    UNKNOWN = "unknown"


ALIASES: dict[str, str] = {
    "rsi14": "rsi_14",
    "sma20": "sma_20",
    "sma50": "sma_50",
    "ema12": "ema_12",
    "ema26": "ema_26",
    "mfi14": "mfi_14",
    "cci20": "cci_20",
    "atr14": "atr_14",
    "adx14": "adx_14",
    "plusdi": "plus_di",
    "minusdi": "minus_di",
    "macd_12_26_9": "macd",
    "bbands_20_2": "bbands",
    "stoch_14_3_3": "stoch",
    # Bare family names resolve to their default period
    "sma": "sma_20",
    "ema": "ema_12",
    "rsi": "rsi_14",
    "atr": "atr_14",
    "adx": "adx_14",
    "cci": "cci_20",
    "mfi": "mfi_14",
}

# Families whose identifier carries a period suffix: `<prefix>_<P>`
DEFAULT_PERIODS: dict[IndicatorFamily, int] = {
    IndicatorFamily.SMA: 20,
    IndicatorFamily.EMA: 12,
    IndicatorFamily.RSI: 14,
    IndicatorFamily.ATR: 14,
    IndicatorFamily.ADX: 14,
    IndicatorFamily.CCI: 20,
    IndicatorFamily.MFI: 14,
}

# Fixed-parameter families. Prefix matches (`macd_5_10_3`) still resolve to
# the default parameters.
_FIXED_PREFIX = (IndicatorFamily.MACD, IndicatorFamily.BBANDS, IndicatorFamily.STOCH)
_FIXED_EXACT = (
    IndicatorFamily.PLUS_DI,
    IndicatorFamily.MINUS_DI,
    IndicatorFamily.VWAP,
    IndicatorFamily.OBV,
)

DI_PERIOD = 14
STOCH_PERIOD = 14
UNKNOWN_LOOKBACK = 50

# family -> (period -> (required_bars, warmup_bars))
_LOOKBACK_RULES: dict[IndicatorFamily, Callable[[int], tuple[int, int | None]]] = {
    IndicatorFamily.SMA: lambda p: (p, p - 1),
    IndicatorFamily.EMA: lambda p: (2 * p, (3 * p) // 2),
    IndicatorFamily.RSI: lambda p: (p + 1, p),
    IndicatorFamily.MACD: lambda p: (35, 33),
    IndicatorFamily.BBANDS: lambda p: (20, 19),
    IndicatorFamily.ATR: lambda p: (p, p - 1),
    IndicatorFamily.ADX: lambda p: (2 * p, 2 * p - 1),
    IndicatorFamily.PLUS_DI: lambda p: (2 * DI_PERIOD, 2 * DI_PERIOD - 1),
    IndicatorFamily.MINUS_DI: lambda p: (2 * DI_PERIOD, 2 * DI_PERIOD - 1),
    IndicatorFamily.VWAP: lambda p: (1, 0),
    IndicatorFamily.CCI: lambda p: (p, p - 1),
    IndicatorFamily.STOCH: lambda p: (STOCH_PERIOD, STOCH_PERIOD - 1),
    IndicatorFamily.MFI: lambda p: (p, p - 1),
    IndicatorFamily.OBV: lambda p: (1, 0),
    IndicatorFamily.UNKNOWN: lambda p: (UNKNOWN_LOOKBACK, None),
}


@dataclass(frozen=True)
class IndicatorSpec:
    """A resolved indicator request.

    Attributes:
        name: Normalized identifier, used as the response key.
        family: Indicator family.
        period: Period parsed from the identifier (None for fixed families).
        required_bars: Minimum number of bars for any output.
        warmup_bars: Bars consumed before the first stable value
            (None for unknown identifiers).
    """

    name: str
    family: IndicatorFamily
    period: int | None
    required_bars: int
    warmup_bars: int | None


def normalize_indicator_name(name: str) -> str:
    """Lower-case, map '-' to '_', then apply the alias table.

    Args:
        name: Caller-supplied identifier.

    Returns:
        Normalized identifier.
    """
    lowered = name.strip().lower().replace("-", "_")
    return ALIASES.get(lowered, lowered)


def _parse_period(name: str, default: int) -> int:
    """Read the integer after the first '_' or fall back to `default`."""
    parts = name.split("_")
    try:
        period = int(parts[1])
    except (IndexError, ValueError):
        return default
    return period if period > 0 else default


def _match_family(name: str) -> tuple[IndicatorFamily, int | None]:
    for family, default in DEFAULT_PERIODS.items():
        if name.startswith(f"{family.value}_"):
            return family, _parse_period(name, default)

    for family in _FIXED_PREFIX:
        if name == family.value or name.startswith(f"{family.value}_"):
            return family, None

    for family in _FIXED_EXACT:
        if name == family.value:
            return family, None

    return IndicatorFamily.UNKNOWN, None


def resolve_indicator(name: str) -> IndicatorSpec:
    """Resolve an identifier to its family and bar requirements.

    Args:
        name: Caller-supplied identifier (normalized or not).

    Returns:
        IndicatorSpec. Unknown identifiers resolve to the UNKNOWN family
        with a 50-bar lookback.
    """
    normalized = normalize_indicator_name(name)
    family, period = _match_family(normalized)
    required, warmup = _LOOKBACK_RULES[family](period or 0)

    return IndicatorSpec(
        name=normalized,
        family=family,
        period=period,
        required_bars=required,
        warmup_bars=warmup,
    )


def get_indicator_lookback(name: str) -> int:
    """Minimum bar count for an identifier."""
    return resolve_indicator(name).required_bars
