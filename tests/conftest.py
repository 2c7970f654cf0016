"""Shared fixtures: deterministic OHLCV frames and their raw o2 bar encoding.

All data is static and deterministic. No network calls, no randomness.
"""

from decimal import Decimal
from typing import Callable

import pandas as pd
import pytest

from src.modules.data.protocols import RawBar

FIVE_MINUTES_MS = 5 * 60 * 1000

# Fixed "now" for every pipeline test (2023-11-14T22:13:20Z)
NOW_MS = 1_700_000_000_000


def _scale_up(value: float, decimals: int = 9) -> str:
    """Encode a float as an o2 fixed-point integer string."""
    return str(int(Decimal(str(value)).scaleb(decimals)))


def ohlcv_frame(closes: list[float], volumes: list[float] | None = None) -> pd.DataFrame:
    """Build OHLCV rows around a close path.

    Open sits 0.2 below close, high 0.5 above close, low 0.3 below open.
    """
    n = len(closes)
    close = pd.Series(closes, dtype=float)
    open_ = close - 0.2
    high = close + 0.5
    low = open_ - 0.3
    if volumes is None:
        volumes = [1_000.0 + i * 10.0 for i in range(n)]

    return pd.DataFrame(
        {
            "timestamp": [NOW_MS - (n - i) * FIVE_MINUTES_MS for i in range(n)],
            "open": open_.values,
            "high": high.values,
            "low": low.values,
            "close": close.values,
            "volume": pd.Series(volumes, dtype=float).values,
        }
    )


def sample_closes(n: int) -> list[float]:
    """Gradual uptrend with an alternating up/down pattern."""
    move = [0.5, 0.8, -0.3, 1.0, 0.0, 0.6, -0.7, 0.4, 1.2, -0.5]
    prices = [100.0]
    for i in range(1, n):
        prices.append(round(prices[-1] + move[i % len(move)], 6))
    return prices


@pytest.fixture
def sample_ohlcv() -> pd.DataFrame:
    """60 bars of realistic OHLCV data, last bar closed before NOW_MS."""
    return ohlcv_frame(sample_closes(60))


@pytest.fixture
def trending_up_df() -> pd.DataFrame:
    """60 bars of a strong, perfectly linear uptrend (+1 per bar)."""
    return ohlcv_frame([100.0 + i for i in range(60)])


@pytest.fixture
def flat_df() -> pd.DataFrame:
    """40 bars where open == high == low == close."""
    n = 40
    return pd.DataFrame(
        {
            "timestamp": [NOW_MS - (n - i) * FIVE_MINUTES_MS for i in range(n)],
            "open": [100.0] * n,
            "high": [100.0] * n,
            "low": [100.0] * n,
            "close": [100.0] * n,
            "volume": [1_000.0] * n,
        }
    )


def to_raw_bars(df: pd.DataFrame) -> list[RawBar]:
    """Encode an OHLCV frame as o2 raw bars (9 decimals, volume split 60/40)."""
    bars: list[RawBar] = []
    for row in df.itertuples(index=False):
        buy = round(row.volume * 0.6, 6)
        sell = round(row.volume - buy, 6)
        bars.append(
            RawBar(
                open=_scale_up(row.open),
                high=_scale_up(row.high),
                low=_scale_up(row.low),
                close=_scale_up(row.close),
                buy_volume=_scale_up(buy),
                sell_volume=_scale_up(sell),
                timestamp=int(row.timestamp),
            )
        )
    return bars


@pytest.fixture
def make_raw_bars() -> Callable[[pd.DataFrame], list[RawBar]]:
    """Factory fixture encoding a frame as raw bars."""
    return to_raw_bars
