"""Bar Decoder - fixed-point bar records to float OHLCV series.

o2 quotes prices and volumes as integer strings scaled by 10^decimals.
Scaling happens in decimal arithmetic so that very large integers do not
lose precision before the final float conversion.
"""

from decimal import Decimal, InvalidOperation
from typing import Literal, Sequence

import pandas as pd

from src.modules.data.protocols import RawBar

PriceSource = Literal["close", "hlc3", "ohlc4"]

DEFAULT_DECIMALS = 9

OHLCV_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


class BarFormatError(ValueError):
    """A bar field is not a parseable decimal string."""


def scale_down(value: str | int, decimals: int) -> float:
    """Divide a fixed-point value by 10^decimals.

    Args:
        value: Integer (or decimal) string as sent by the API.
        decimals: Fixed-point exponent.

    Returns:
        The scaled value as a float.

    Raises:
        BarFormatError: If `value` is not a finite decimal number.
    """
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise BarFormatError(f"Not a decimal value: {value!r}") from e
    if not parsed.is_finite():
        raise BarFormatError(f"Not a finite decimal value: {value!r}")

    # scaleb shifts the exponent exactly; no rounding until float().
    return float(parsed.scaleb(-decimals))


def decode_bars(
    bars: Sequence[RawBar],
    price_decimals: int = DEFAULT_DECIMALS,
    volume_decimals: int = DEFAULT_DECIMALS,
) -> pd.DataFrame:
    """Decode raw bars into an OHLCV DataFrame.

    Args:
        bars: Raw bars ordered by non-decreasing timestamp.
        price_decimals: Fixed-point exponent for open/high/low/close.
        volume_decimals: Fixed-point exponent for buy/sell volume.

    Returns:
        DataFrame with columns timestamp (int64 ms), open, high, low, close,
        volume (float). Row i corresponds to bars[i].

    Raises:
        BarFormatError: If any price or volume field is malformed.
    """
    rows = []
    for bar in bars:
        try:
            total_volume = Decimal(str(bar["buy_volume"]).strip()) + Decimal(
                str(bar["sell_volume"]).strip()
            )
        except InvalidOperation as e:
            raise BarFormatError(
                f"Bad volume at {bar.get('timestamp')}: "
                f"{bar['buy_volume']!r} / {bar['sell_volume']!r}"
            ) from e

        rows.append(
            (
                int(bar["timestamp"]),
                scale_down(bar["open"], price_decimals),
                scale_down(bar["high"], price_decimals),
                scale_down(bar["low"], price_decimals),
                scale_down(bar["close"], price_decimals),
                scale_down(str(total_volume), volume_decimals),
            )
        )

    df = pd.DataFrame(rows, columns=OHLCV_COLUMNS)
    return df.astype(
        {
            "timestamp": "int64",
            "open": float,
            "high": float,
            "low": float,
            "close": float,
            "volume": float,
        }
    )


def price_series(bars: pd.DataFrame, source: PriceSource = "close") -> pd.Series:
    """Select the price series indicators run on.

    Args:
        bars: Decoded OHLCV DataFrame.
        source: 'close', 'hlc3' ((H+L+C)/3) or 'ohlc4' ((O+H+L+C)/4).

    Returns:
        Price series aligned with `bars`.

    Raises:
        ValueError: If `source` is unknown.
    """
    if source == "close":
        return bars["close"]
    if source == "hlc3":
        return (bars["high"] + bars["low"] + bars["close"]) / 3.0
    if source == "ohlc4":
        return (bars["open"] + bars["high"] + bars["low"] + bars["close"]) / 4.0
    raise ValueError(f"Unknown price source: {source}")
