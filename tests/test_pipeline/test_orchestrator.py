"""Tests for the indicator pipeline (fetch, trim, calculate, format)."""

from typing import Any, Callable
from unittest.mock import MagicMock

import pandas as pd
import pytest

from src.modules.data.protocols import ProviderError, RawBar
from src.modules.features.indicators.trend import sma
from src.modules.pipeline.orchestrator import (
    SNAPSHOT_BUFFER_BARS,
    IndicatorPipeline,
    resolution_duration_ms,
)
from src.modules.pipeline.request import IndicatorRequest


# Clock of the fixture frames in conftest
NOW_MS = 1_700_000_000_000
FIVE_MINUTES_MS = 5 * 60 * 1000
DAY_MS = 24 * 60 * 60 * 1000
MARKET = "0xmarket"

RawBarsFactory = Callable[[pd.DataFrame], list[RawBar]]


def _provider(bars: list[RawBar]) -> MagicMock:
    provider = MagicMock()
    provider.name = "o2"
    provider.get_bars.return_value = bars
    return provider


def _pipeline(provider: MagicMock) -> IndicatorPipeline:
    return IndicatorPipeline(provider, clock=lambda: NOW_MS)


def _request(indicators: list[str], **kwargs: Any) -> IndicatorRequest:
    return IndicatorRequest(market_id=MARKET, indicators=indicators, **kwargs)


class TestResolutionDuration:
    """Tests for resolution_duration_ms."""

    def test_known(self) -> None:
        """Known resolutions map to their duration."""
        assert resolution_duration_ms("1m") == 60_000
        assert resolution_duration_ms("1h") == 3_600_000
        assert resolution_duration_ms("1w") == 7 * DAY_MS

    def test_unknown_defaults_to_five_minutes(self) -> None:
        """Unknown resolutions count as 5m."""
        assert resolution_duration_ms("7m") == FIVE_MINUTES_MS


class TestSnapshot:
    """Snapshot mode."""

    def test_success_shape(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """A healthy request returns every snapshot field."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["sma_20", "rsi_14"]))

        assert result["ok"] is True
        data = result["data"]
        assert data["marketId"] == MARKET
        assert data["resolution"] == "5m"
        assert data["from"] == NOW_MS - DAY_MS
        assert data["to"] == NOW_MS
        assert data["asOf"] == NOW_MS
        assert data["bars"] == 60
        assert data["currentPrice"] == pytest.approx(sample_ohlcv["close"].iloc[-1])
        assert data["currentPriceSource"] == "last_close"
        assert data["warnings"] == []
        assert set(data["indicators"]) == {"sma_20", "rsi_14"}
        assert "microSummary" not in data

        rsi_out = data["indicators"]["rsi_14"]
        assert rsi_out["levels"] == {"overbought": 70, "oversold": 30}
        assert rsi_out["meta"]["providedBars"] == 60

        sma_out = data["indicators"]["sma_20"]
        expected = sma(sample_ohlcv["close"], 20)
        assert sma_out["value"] == pytest.approx(expected.iloc[-1])
        assert sma_out["prev"] == pytest.approx(expected.iloc[-2])

    def test_count_back_uses_snapshot_buffer(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Snapshot fetches the longest lookback plus the buffer."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        _pipeline(provider).run(_request(["sma_20", "rsi_14"]))

        provider.get_bars.assert_called_once_with(
            MARKET, "5m", 20 + SNAPSHOT_BUFFER_BARS, NOW_MS - DAY_MS, NOW_MS
        )

    def test_duplicate_identifiers_collapse(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """'RSI-14' and 'rsi14' are one indicator."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["RSI-14", "rsi14", "rsi_14"]))

        assert list(result["data"]["indicators"]) == ["rsi_14"]

    def test_derived_and_micro_summary(
        self, trending_up_df: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Derived fields and the regime summary read the calculated set."""
        provider = _provider(make_raw_bars(trending_up_df))
        indicators = [
            "sma_20", "sma_50", "plus_di", "minus_di", "adx_14",
            "rsi_14", "macd", "atr_14", "bbands", "vwap",
        ]
        result = _pipeline(provider).run(_request(indicators, micro_summary=True))

        data = result["data"]
        atr_value = data["indicators"]["atr_14"]["value"]
        sma_value = data["indicators"]["sma_20"]["value"]
        assert sma_value == pytest.approx(149.5)
        assert data["derived"]["dist_sma20_atr"] == pytest.approx(
            (159.0 - sma_value) / atr_value
        )
        assert "dist_vwap_atr" in data["derived"]

        summary = data["microSummary"]
        assert summary["trendBias"] == "bullish"
        assert summary["trendStrength"] == "strong"
        assert summary["volatility"] == "high"
        assert "price>sma20>sma50" in summary["inputs"]

    def test_hlc3_price_source(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """priceSource reaches price-based indicators but not HLC ones."""
        bars = sample_ohlcv.assign(high=sample_ohlcv["high"] + 0.9)
        provider = _provider(make_raw_bars(bars))
        pipeline = _pipeline(provider)

        on_close = pipeline.run(_request(["sma_20", "atr_14"]))["data"]["indicators"]
        on_hlc3 = pipeline.run(_request(["sma_20", "atr_14"], price_source="hlc3"))[
            "data"
        ]["indicators"]

        typical = (bars["high"] + bars["low"] + bars["close"]) / 3.0
        assert on_hlc3["sma_20"]["value"] == pytest.approx(sma(typical, 20).iloc[-1])
        assert on_hlc3["sma_20"]["value"] == pytest.approx(
            on_close["sma_20"]["value"] + 0.3
        )
        assert on_hlc3["atr_14"]["value"] == pytest.approx(on_close["atr_14"]["value"])

    def test_idempotent(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Same bars and clock give the same response."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        pipeline = _pipeline(provider)
        request = _request(["macd", "bbands", "stoch"])

        assert pipeline.run(request) == pipeline.run(request)


class TestWindow:
    """Window mode."""

    def test_window_arrays(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Arrays align with the last `window_size` timestamps."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(
            _request(["sma_20", "macd", "bbands"], mode="window", window_size=10)
        )

        data = result["data"]
        assert data["bars"] == 10
        assert data["timestamps"] == sample_ohlcv["timestamp"].tail(10).tolist()
        assert data["timestamps"] == sorted(data["timestamps"])
        assert "currentPrice" not in data

        expected = sma(sample_ohlcv["close"], 20).tail(10).tolist()
        assert data["indicators"]["sma_20"] == pytest.approx(expected)

        macd_out = data["indicators"]["macd"]
        assert set(macd_out) == {"macd", "signal", "histogram"}
        assert all(len(v) == 10 for v in macd_out.values())
        assert "percentB" in data["indicators"]["bbands"]

        provider.get_bars.assert_called_once_with(
            MARKET, "5m", 35 + 10, NOW_MS - DAY_MS, NOW_MS
        )

    def test_window_warm_up_is_none(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Warm-up points are None when the window reaches back that far."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(
            _request(["sma_20"], mode="window", window_size=100)
        )

        values = result["data"]["indicators"]["sma_20"]
        assert len(values) == 60
        assert values[:19] == [None] * 19
        assert all(v is not None for v in values[19:])

    def test_window_failed_indicator_is_none(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Unknown indicators have no array."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(
            _request(["ichimoku", "obv"], mode="window", window_size=5)
        )

        assert result["data"]["indicators"]["ichimoku"] is None
        assert len(result["data"]["indicators"]["obv"]) == 5


class TestTimeWindow:
    """Window resolution: period, from/to, asOf."""

    def test_explicit_from_to(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Explicit from/to replace the period preset."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(
            _request(["obv"], from_ms=1_000, to_ms=2_000)
        )

        assert result["data"]["from"] == 1_000
        assert result["data"]["to"] == 2_000
        provider.get_bars.assert_called_once_with(MARKET, "5m", 1 + 50, 1_000, 2_000)

    def test_from_alone_is_ignored(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Only a complete from/to pair overrides the period."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["obv"], period="1h", from_ms=1_000))

        assert result["data"]["from"] == NOW_MS - 60 * 60 * 1000
        assert result["data"]["to"] == NOW_MS

    def test_as_of_overrides_to(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """asOf becomes the window end and is reported as a warning."""
        as_of = NOW_MS - 60 * 60 * 1000
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["obv"], as_of=as_of))

        data = result["data"]
        assert data["to"] == as_of
        assert data["asOf"] == as_of
        assert {"code": "AS_OF_TIMESTAMP", "details": {"asOf": as_of}} in data["warnings"]


class TestIncompleteBar:
    """Trimming of a still-forming last bar."""

    def test_incomplete_last_bar_dropped(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """A bar younger than one resolution is removed."""
        raw = make_raw_bars(sample_ohlcv)
        raw[-1]["timestamp"] = NOW_MS - 200_000
        result = _pipeline(_provider(raw)).run(_request(["sma_20"]))

        data = result["data"]
        assert data["bars"] == 59
        assert data["currentPrice"] == pytest.approx(sample_ohlcv["close"].iloc[-2])
        assert {
            "code": "INCOMPLETE_LAST_BAR",
            "details": {"timestamp": NOW_MS - 200_000},
        } in data["warnings"]

    def test_incomplete_last_bar_kept_on_request(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """includeIncompleteLastBar keeps every bar."""
        raw = make_raw_bars(sample_ohlcv)
        raw[-1]["timestamp"] = NOW_MS - 200_000
        result = _pipeline(_provider(raw)).run(
            _request(["sma_20"], include_incomplete_last_bar=True)
        )

        assert result["data"]["bars"] == 60
        assert result["data"]["warnings"] == []

    def test_only_bar_incomplete(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Trimming the only bar is fatal."""
        raw = make_raw_bars(sample_ohlcv.tail(1))
        raw[0]["timestamp"] = NOW_MS - 1_000
        result = _pipeline(_provider(raw)).run(_request(["obv"]))

        assert result["ok"] is False
        assert result["code"] == "INSUFFICIENT_DATA"


class TestSufficiency:
    """Bar sufficiency and strict mode."""

    def test_insufficient_non_strict(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Missing bars become a warning and a per-indicator error."""
        provider = _provider(make_raw_bars(sample_ohlcv.tail(30)))
        result = _pipeline(provider).run(_request(["sma_50", "rsi_14"]))

        data = result["data"]
        assert {
            "code": "INSUFFICIENT_BARS",
            "details": {"required": 50, "available": 30},
        } in data["warnings"]
        assert data["indicators"]["sma_50"] == {
            "value": None,
            "error": "INSUFFICIENT_BARS",
            "meta": {"requiredBars": 50, "providedBars": 30, "warmupBars": 0},
        }
        assert data["indicators"]["rsi_14"]["value"] is not None

    def test_insufficient_strict(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Strict mode fails the whole request."""
        provider = _provider(make_raw_bars(sample_ohlcv.tail(30)))
        result = _pipeline(provider).run(_request(["sma_50"], strict=True))

        assert result == {
            "ok": False,
            "error": "Insufficient bars. Required: 50, Available: 30",
            "code": "INSUFFICIENT_DATA",
        }

    def test_unknown_indicator_non_strict(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Unknown identifiers report UNKNOWN_INDICATOR."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["ichimoku"]))

        out = result["data"]["indicators"]["ichimoku"]
        assert out["value"] is None
        assert out["error"] == "UNKNOWN_INDICATOR"

    def test_unknown_indicator_strict(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Strict mode rejects unknown identifiers."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["ichimoku"], strict=True))

        assert result["ok"] is False
        assert result["code"] == "INDICATOR_ERROR"
        assert "ichimoku" in result["error"]

    def test_computation_error_non_strict(
        self, flat_df: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """A non-finite CCI is isolated to its own entry."""
        provider = _provider(make_raw_bars(flat_df))
        result = _pipeline(provider).run(_request(["cci_20", "sma_20"]))

        indicators = result["data"]["indicators"]
        assert indicators["cci_20"]["value"] is None
        assert "non-finite" in indicators["cci_20"]["error"]
        assert indicators["sma_20"]["value"] == pytest.approx(100.0)

    def test_flat_market_reads_low_volatility(
        self, flat_df: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Zero ATR and zero bandwidth classify as low volatility."""
        provider = _provider(make_raw_bars(flat_df))
        result = _pipeline(provider).run(
            _request(["atr_14", "bbands"], micro_summary=True)
        )

        data = result["data"]
        assert data["indicators"]["bbands"]["value"]["percentB"] is None
        assert data["indicators"]["bbands"]["value"]["bandwidth"] == 0.0
        assert data["microSummary"]["volatility"] == "low"
        assert "low_volatility" in data["microSummary"]["inputs"]

    def test_computation_error_strict(
        self, flat_df: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Strict mode turns a computation error into a failure."""
        provider = _provider(make_raw_bars(flat_df))
        result = _pipeline(provider).run(_request(["cci_20"], strict=True))

        assert result["ok"] is False
        assert result["code"] == "INDICATOR_ERROR"


class TestFailures:
    """Fatal request, provider and data failures."""

    def test_too_many_indicators_rejected_before_fetch(self) -> None:
        """More than 20 identifiers fail without calling the provider."""
        provider = _provider([])
        indicators = [f"sma_{i}" for i in range(1, 22)]
        result = _pipeline(provider).run(_request(indicators))

        assert result["ok"] is False
        assert result["code"] == "REQUEST_ERROR"
        assert "Maximum is 20" in result["error"]
        provider.get_bars.assert_not_called()

    def test_provider_error(self) -> None:
        """Provider failures surface as PROVIDER_ERROR."""
        provider = _provider([])
        provider.get_bars.side_effect = ProviderError("o2", MARKET, "HTTP 500: boom")
        result = _pipeline(provider).run(_request(["rsi_14"]))

        assert result["ok"] is False
        assert result["code"] == "PROVIDER_ERROR"
        assert "HTTP 500" in result["error"]

    def test_no_bars(self) -> None:
        """An empty bar list is a provider error."""
        result = _pipeline(_provider([])).run(_request(["rsi_14"]))

        assert result["code"] == "PROVIDER_ERROR"
        assert "No bars returned" in result["error"]

    def test_malformed_bar(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """Undecodable prices are a provider error."""
        raw = make_raw_bars(sample_ohlcv)
        raw[5]["close"] = "not-a-number"
        result = _pipeline(_provider(raw)).run(_request(["rsi_14"]))

        assert result["ok"] is False
        assert result["code"] == "PROVIDER_ERROR"

    def test_unexpected_exception(self) -> None:
        """Anything else is an INTERNAL_ERROR result, not an exception."""
        provider = _provider([])
        provider.get_bars.side_effect = RuntimeError("socket exploded")
        result = _pipeline(provider).run(_request(["rsi_14"]))

        assert result == {
            "ok": False,
            "error": "socket exploded",
            "code": "INTERNAL_ERROR",
        }


class TestVwapAnchor:
    """VWAP anchoring."""

    def test_session_anchor_warns(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """A session anchor request is served window-anchored with a warning."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["vwap"], vwap_anchor="session"))

        data = result["data"]
        assert {
            "code": "VWAP_ANCHOR_UNSUPPORTED",
            "details": {"requested": "session", "applied": "window"},
        } in data["warnings"]
        assert data["indicators"]["vwap"]["meta"]["anchor"] == "window"

    def test_session_anchor_without_vwap(
        self, sample_ohlcv: pd.DataFrame, make_raw_bars: RawBarsFactory
    ) -> None:
        """No warning when VWAP was not requested."""
        provider = _provider(make_raw_bars(sample_ohlcv))
        result = _pipeline(provider).run(_request(["obv"], vwap_anchor="session"))

        assert result["data"]["warnings"] == []
