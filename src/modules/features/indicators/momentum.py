"""Momentum indicators: RSI, Stochastic, CCI.

Pure functions operating on pandas Series. No state or side effects.
"""

import numpy as np
import pandas as pd

from src.modules.features.indicators.smoothing import wilder

# Lambert's constant: scales CCI so ~75% of values fall within +/-100
CCI_CONSTANT = 0.015


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """Calculate Relative Strength Index (Wilder's smoothing).

    Args:
        close: Price series.
        period: Lookback period (default 14).

    Returns:
        RSI values between 0 and 100. First `period` values are NaN.

    Raises:
        ValueError: If period < 1 or series is empty.
    """
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")
    if close.empty:
        raise ValueError("Close series is empty")

    delta = close.diff()
    gains = delta.where(delta > 0, 0.0)
    losses = (-delta).where(delta < 0, 0.0)

    avg_gain = wilder(gains, period, start=1)
    avg_loss = wilder(losses, period, start=1)

    rs = avg_gain / avg_loss
    result = 100.0 - (100.0 / (1.0 + rs))

    # Where avg_loss is 0, RSI = 100 (all gains)
    result = result.where(avg_loss > 0, 100.0)
    # Where avg_gain is 0, RSI = 0 (all losses)
    result = result.where(avg_gain > 0, 0.0)
    # Ensure warm-up period is NaN
    result.iloc[:period] = np.nan

    return result


def stochastic(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    fast_k: int = 14,
    slow_k: int = 3,
    slow_d: int = 3,
) -> pd.DataFrame:
    """Calculate the slow Stochastic oscillator.

    Fast %K = 100 * (C - lowest low) / (highest high - lowest low) over
    `fast_k` bars; slow %K is its `slow_k` SMA and %D the `slow_d` SMA of
    slow %K.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        fast_k: Fast %K lookback (default 14).
        slow_k: Slow %K smoothing (default 3).
        slow_d: %D smoothing (default 3).

    Returns:
        DataFrame with columns k, d. NaN for the first
        `fast_k + slow_k + slow_d - 3` rows.

    Raises:
        ValueError: If any period < 1 or series are empty/mismatched.
    """
    if fast_k < 1 or slow_k < 1 or slow_d < 1:
        raise ValueError(
            f"All periods must be >= 1, got fast_k={fast_k}, slow_k={slow_k}, slow_d={slow_d}"
        )
    if high.empty or low.empty or close.empty:
        raise ValueError("Price series must not be empty")
    if not (len(high) == len(low) == len(close)):
        raise ValueError("All price series must have the same length")

    lowest = low.rolling(window=fast_k, min_periods=fast_k).min()
    highest = high.rolling(window=fast_k, min_periods=fast_k).max()
    span = highest - lowest

    raw_k = 100.0 * (close - lowest) / span
    # No range in the lookback: pin %K to 0
    raw_k = raw_k.mask(span == 0, 0.0)

    k = raw_k.rolling(window=slow_k, min_periods=slow_k).mean()
    d = k.rolling(window=slow_d, min_periods=slow_d).mean()

    return pd.DataFrame({"k": k, "d": d})


def cci(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 20,
) -> pd.Series:
    """Calculate Commodity Channel Index.

    Formula: (TP - SMA(TP)) / (0.015 * mean absolute deviation of TP),
    with TP = (H + L + C) / 3.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        period: Lookback period (default 20).

    Returns:
        CCI series. First `period - 1` values are NaN. A flat window
        (zero deviation) yields a non-finite value.

    Raises:
        ValueError: If period < 1 or series are empty/mismatched.
    """
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")
    if high.empty or low.empty or close.empty:
        raise ValueError("Price series must not be empty")
    if not (len(high) == len(low) == len(close)):
        raise ValueError("All price series must have the same length")

    typical = (high + low + close) / 3.0
    mean = typical.rolling(window=period, min_periods=period).mean()
    mean_dev = typical.rolling(window=period, min_periods=period).apply(
        lambda w: np.abs(w - w.mean()).mean(), raw=True
    )

    return (typical - mean) / (CCI_CONSTANT * mean_dev)
