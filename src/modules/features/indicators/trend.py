"""Trend indicators: SMA, EMA, MACD, ADX, +DI/-DI.

Pure functions operating on pandas Series. No state or side effects.
"""

import numpy as np
import pandas as pd

from src.modules.features.indicators.smoothing import sma_seeded_ema, wilder


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")


def _check_hlc(high: pd.Series, low: pd.Series, close: pd.Series) -> None:
    if high.empty or low.empty or close.empty:
        raise ValueError("Price series must not be empty")
    if not (len(high) == len(low) == len(close)):
        raise ValueError("All price series must have the same length")


def true_range(high: pd.Series, low: pd.Series, close: pd.Series) -> pd.Series:
    """True range: max(H-L, |H-prevC|, |L-prevC|).

    The first bar has no previous close, so its true range is H-L.
    """
    prev_close = close.shift(1)
    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()
    return pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)


def sma(series: pd.Series, period: int) -> pd.Series:
    """Calculate Simple Moving Average.

    Args:
        series: Input price series.
        period: SMA period.

    Returns:
        SMA series. First `period - 1` values are NaN.

    Raises:
        ValueError: If period < 1 or series is empty.
    """
    _check_period(period)
    if series.empty:
        raise ValueError("Input series is empty")

    return series.rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int) -> pd.Series:
    """Calculate Exponential Moving Average.

    Seeded with the SMA of the first `period` values, then
    alpha = 2 / (period + 1).

    Args:
        series: Input price series.
        period: EMA period.

    Returns:
        EMA series. First `period - 1` values are NaN.

    Raises:
        ValueError: If period < 1 or series is empty.
    """
    _check_period(period)
    if series.empty:
        raise ValueError("Input series is empty")

    return sma_seeded_ema(series, period)


def macd(
    series: pd.Series,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> pd.DataFrame:
    """Calculate MACD line, signal line and histogram.

    Formula: MACD = EMA(fast) - EMA(slow); Signal = EMA(MACD, signal);
    Histogram = MACD - Signal.

    Args:
        series: Input price series.
        fast: Fast EMA period (default 12).
        slow: Slow EMA period (default 26).
        signal: Signal line EMA period (default 9).

    Returns:
        DataFrame with columns macd, signal, histogram. All three are NaN
        for the first `slow + signal - 2` rows.

    Raises:
        ValueError: If fast >= slow or any period < 1.
    """
    if fast < 1 or slow < 1 or signal < 1:
        raise ValueError(f"All periods must be >= 1, got fast={fast}, slow={slow}, signal={signal}")
    if fast >= slow:
        raise ValueError(f"Fast period must be < slow period, got fast={fast}, slow={slow}")
    if series.empty:
        raise ValueError("Input series is empty")

    macd_line = sma_seeded_ema(series, fast) - sma_seeded_ema(series, slow)
    signal_line = sma_seeded_ema(macd_line, signal)
    # Report the line only once the signal exists, so all columns share one warm-up
    macd_line = macd_line.where(signal_line.notna())

    return pd.DataFrame(
        {
            "macd": macd_line,
            "signal": signal_line,
            "histogram": macd_line - signal_line,
        }
    )


def directional_indicators(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
) -> pd.DataFrame:
    """Calculate Wilder's +DI and -DI.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        period: Smoothing period (default 14).

    Returns:
        DataFrame with columns plus_di, minus_di (0-100). NaN for the
        first `period` rows.

    Raises:
        ValueError: If period < 1 or series are empty/mismatched.
    """
    _check_period(period)
    _check_hlc(high, low, close)

    tr = true_range(high, low, close)

    # Directional Movement
    up_move = high - high.shift(1)
    down_move = low.shift(1) - low

    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0)
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0)

    # Movement starts at the second bar
    tr_smooth = wilder(tr, period, start=1)
    plus_smooth = wilder(plus_dm, period, start=1)
    minus_smooth = wilder(minus_dm, period, start=1)

    return pd.DataFrame(
        {
            "plus_di": 100.0 * plus_smooth / tr_smooth,
            "minus_di": 100.0 * minus_smooth / tr_smooth,
        }
    )


def adx(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
) -> pd.Series:
    """Calculate Average Directional Index.

    Measures trend strength regardless of direction.
    ADX > 25 is read as a strong trend, < 15 as no trend.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        period: ADX period (default 14).

    Returns:
        ADX values (0-100). First `2 * period - 1` values are NaN.

    Raises:
        ValueError: If period < 1 or series are empty/mismatched.
    """
    di = directional_indicators(high, low, close, period)
    di_sum = di["plus_di"] + di["minus_di"]

    dx = 100.0 * (di["plus_di"] - di["minus_di"]).abs() / di_sum
    # Flat market where both DI are 0
    dx = dx.mask(di_sum == 0, 0.0)
    dx = dx.replace([np.inf, -np.inf], np.nan)

    return wilder(dx, period)
