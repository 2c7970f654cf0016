"""Fixtures for indicator tests.

Frame fixtures (sample_ohlcv, trending_up_df, flat_df) live in the root
conftest; these are the single-series edge cases.
"""

import pandas as pd
import pytest


@pytest.fixture
def all_gains_close() -> pd.Series:
    """Close series where every bar is an up bar (for RSI = 100)."""
    return pd.Series([100.0 + i for i in range(20)], dtype=float)


@pytest.fixture
def all_losses_close() -> pd.Series:
    """Close series where every bar is a down bar (for RSI = 0)."""
    return pd.Series([120.0 - i for i in range(20)], dtype=float)
