"""Volatility indicators: ATR, Bollinger Bands.

Pure functions operating on pandas Series. No state or side effects.
"""

import pandas as pd

from src.modules.features.indicators.smoothing import wilder
from src.modules.features.indicators.trend import true_range


def atr(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
) -> pd.Series:
    """Calculate Average True Range.

    ATR measures volatility. The regime classifier reads it as a
    percentage of price, and derived fields use it as a distance unit.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        period: ATR period (default 14).

    Returns:
        ATR values. First `period - 1` values are NaN (the first bar's
        true range is its high-low span).

    Raises:
        ValueError: If period < 1 or series are empty/mismatched.
    """
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")
    if high.empty or low.empty or close.empty:
        raise ValueError("Price series must not be empty")
    if not (len(high) == len(low) == len(close)):
        raise ValueError("All price series must have the same length")

    return wilder(true_range(high, low, close), period, start=0)


def bollinger_bands(
    series: pd.Series,
    period: int = 20,
    num_std: float = 2.0,
    close: pd.Series | None = None,
) -> pd.DataFrame:
    """Calculate Bollinger Bands with %B and bandwidth.

    Middle = SMA(period); Upper/Lower = Middle +/- num_std * population
    standard deviation.

    Args:
        series: Price series the bands are built on.
        period: Lookback period (default 20).
        num_std: Band width in standard deviations (default 2).
        close: Series %B is measured against. Defaults to `series`.

    Returns:
        DataFrame with columns upper, middle, lower, percent_b, bandwidth
        (bandwidth in percent of the middle band). First `period - 1`
        rows are NaN; a flat window gives a non-finite %B.

    Raises:
        ValueError: If period < 1, num_std <= 0 or series is empty.
    """
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")
    if num_std <= 0:
        raise ValueError(f"num_std must be > 0, got {num_std}")
    if series.empty:
        raise ValueError("Input series is empty")
    if close is None:
        close = series

    middle = series.rolling(window=period, min_periods=period).mean()
    std = series.rolling(window=period, min_periods=period).std(ddof=0)
    upper = middle + num_std * std
    lower = middle - num_std * std
    width = upper - lower

    return pd.DataFrame(
        {
            "upper": upper,
            "middle": middle,
            "lower": lower,
            "percent_b": (close - lower) / width,
            "bandwidth": width / middle * 100.0,
        }
    )
