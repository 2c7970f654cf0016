"""Volume indicators: OBV, VWAP, MFI.

Pure functions operating on pandas Series. No state or side effects.
"""

import numpy as np
import pandas as pd


def obv(close: pd.Series, volume: pd.Series) -> pd.Series:
    """Calculate On-Balance Volume.

    Cumulative volume: add on up bars, subtract on down bars, zero on flat.

    Args:
        close: Closing price series.
        volume: Volume series (must be same length as close).

    Returns:
        OBV series. First value is the first volume value.

    Raises:
        ValueError: If series lengths don't match or are empty.
    """
    if close.empty or volume.empty:
        raise ValueError("Close and volume series must not be empty")
    if len(close) != len(volume):
        raise ValueError(
            f"Series length mismatch: close={len(close)}, volume={len(volume)}"
        )

    direction = np.sign(close.diff())
    # First bar has no direction: its volume is the starting point
    direction.iloc[0] = 1.0

    return (direction * volume).cumsum()


def vwap(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    volume: pd.Series,
) -> pd.Series:
    """Calculate window-anchored Volume Weighted Average Price.

    Cumulative sum(TP * volume) / sum(volume) from the first bar of the
    input, with TP = (H + L + C) / 3. While cumulative volume is still
    zero the typical price is used.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        volume: Volume series.

    Returns:
        VWAP series with no warm-up NaNs.

    Raises:
        ValueError: If series are empty or mismatched.
    """
    if high.empty or low.empty or close.empty or volume.empty:
        raise ValueError("Price and volume series must not be empty")
    if not (len(high) == len(low) == len(close) == len(volume)):
        raise ValueError("All series must have the same length")

    typical = (high + low + close) / 3.0
    cum_pv = (typical * volume).cumsum()
    cum_vol = volume.cumsum()

    return (cum_pv / cum_vol).where(cum_vol > 0, typical)


def mfi(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    volume: pd.Series,
    period: int = 14,
) -> pd.Series:
    """Calculate Money Flow Index.

    Volume-weighted RSI over typical price: positive flow on bars whose
    typical price rose, negative flow on bars where it fell.

    Args:
        high: High price series.
        low: Low price series.
        close: Closing price series.
        volume: Volume series.
        period: Lookback period (default 14).

    Returns:
        MFI values between 0 and 100. First `period` values are NaN.

    Raises:
        ValueError: If period < 1 or series are empty/mismatched.
    """
    if period < 1:
        raise ValueError(f"Period must be >= 1, got {period}")
    if high.empty or low.empty or close.empty or volume.empty:
        raise ValueError("Price and volume series must not be empty")
    if not (len(high) == len(low) == len(close) == len(volume)):
        raise ValueError("All series must have the same length")

    typical = (high + low + close) / 3.0
    flow = typical * volume
    change = typical.diff()

    positive = flow.where(change > 0, 0.0)
    negative = flow.where(change < 0, 0.0)
    # First bar has no previous typical price
    positive.iloc[0] = np.nan
    negative.iloc[0] = np.nan

    pos_sum = positive.rolling(window=period, min_periods=period).sum()
    neg_sum = negative.rolling(window=period, min_periods=period).sum()
    total = pos_sum + neg_sum

    result = (100.0 * pos_sum / total).mask(total == 0, 0.0)
    return result
