"""Seeded smoothing helpers shared by the indicator modules.

Classical EMA and Wilder averages start from a simple mean of the first
`period` valid points, then recurse. Pandas `ewm(adjust=False)` starts the
recursion at the first non-NaN value, so seeding is done by blanking the
warm-up and writing the mean at the seed position.
"""

import numpy as np
import pandas as pd


def first_valid_position(series: pd.Series) -> int | None:
    """Positional index of the first non-NaN value, or None if all NaN."""
    mask = series.notna().to_numpy()
    if not mask.any():
        return None
    return int(np.argmax(mask))


def seed_with_mean(series: pd.Series, period: int, start: int | None = None) -> pd.Series:
    """Replace the warm-up with NaN and the seed point with the window mean.

    Args:
        series: Input series.
        period: Number of points averaged into the seed.
        start: Position of the first input point. Defaults to the first
            non-NaN value.

    Returns:
        Float series, NaN before position `start + period - 1`.
    """
    if start is None:
        start = first_valid_position(series)

    result = series.astype(float).copy()
    if start is None or len(series) < start + period:
        result.iloc[:] = np.nan
        return result

    seed = start + period - 1
    result.iloc[:seed] = np.nan
    result.iloc[seed] = series.iloc[start : seed + 1].mean()
    return result


def sma_seeded_ema(series: pd.Series, period: int, start: int | None = None) -> pd.Series:
    """EMA with alpha = 2 / (period + 1), seeded by the SMA of the first window."""
    seeded = seed_with_mean(series, period, start)
    return seeded.ewm(span=period, adjust=False).mean()


def wilder(series: pd.Series, period: int, start: int | None = None) -> pd.Series:
    """Wilder smoothing (alpha = 1 / period), seeded by the first window mean."""
    seeded = seed_with_mean(series, period, start)
    return seeded.ewm(alpha=1.0 / period, adjust=False).mean()
