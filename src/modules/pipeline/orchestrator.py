"""Indicator Pipeline - bars in, indicator snapshot or window out.

Resolves the time window, fetches bars, trims a still-forming last bar,
enforces bar sufficiency, runs every requested indicator and formats the
response. Fatal conditions come back as `{"ok": False, ...}`, never as an
exception.
"""

import time
from typing import Any, Callable

import numpy as np
import pandas as pd

from src.modules.data.protocols import BarDataProvider, ProviderError
from src.modules.features.bars import BarFormatError, decode_bars
from src.modules.features.calculator import (
    IndicatorResult,
    calculate_indicator,
    indicator_series,
)
from src.modules.features.derived import compute_derived_fields
from src.modules.features.lookback import IndicatorFamily, IndicatorSpec, resolve_indicator
from src.modules.pipeline.request import MAX_INDICATORS, IndicatorRequest
from src.modules.regime.classifier import classify_regime
from src.shared.errors import (
    IndicatorComputationError,
    IndicatorsError,
    InsufficientDataError,
    RequestError,
)
from src.shared.logger import get_logger

logger = get_logger(__name__)

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS

RESOLUTION_MS = {
    "1m": _MINUTE_MS,
    "5m": 5 * _MINUTE_MS,
    "15m": 15 * _MINUTE_MS,
    "30m": 30 * _MINUTE_MS,
    "1h": _HOUR_MS,
    "4h": 4 * _HOUR_MS,
    "1d": _DAY_MS,
    "1w": 7 * _DAY_MS,
}

PERIOD_MS = {
    "1h": _HOUR_MS,
    "24h": _DAY_MS,
    "7d": 7 * _DAY_MS,
    "30d": 30 * _DAY_MS,
}

# Extra bars fetched beyond the longest lookback in snapshot mode
SNAPSHOT_BUFFER_BARS = 50


def _now_ms() -> int:
    return int(time.time() * 1000)


def resolution_duration_ms(resolution: str) -> int:
    """Bar duration in milliseconds; unknown resolutions count as 5m."""
    return RESOLUTION_MS.get(resolution, RESOLUTION_MS["5m"])


class IndicatorPipeline:
    """Runs one indicator request end to end.

    Holds no per-request state, so one instance can serve concurrent calls.

    Usage:
        pipeline = IndicatorPipeline(O2Provider(config.api_base_url))
        result = pipeline.run(IndicatorRequest.from_payload(payload))
    """

    def __init__(
        self,
        provider: BarDataProvider,
        price_decimals: int = 9,
        volume_decimals: int = 9,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize IndicatorPipeline.

        Args:
            provider: Bar data provider.
            price_decimals: Fixed-point exponent of bar prices.
            volume_decimals: Fixed-point exponent of bar volumes.
            clock: Returns "now" in epoch ms (for testing).
        """
        self._provider = provider
        self._price_decimals = price_decimals
        self._volume_decimals = volume_decimals
        self._clock = clock or _now_ms

    def run(self, request: IndicatorRequest) -> dict[str, Any]:
        """Execute a request.

        Args:
            request: Validated indicator request.

        Returns:
            `{"ok": True, "data": {...}}` on success, otherwise
            `{"ok": False, "error": str, "code": str}`.
        """
        try:
            return {"ok": True, "data": self._execute(request)}
        except (IndicatorsError, ProviderError) as e:
            logger.error(
                f"Indicator request failed: {e}",
                extra={"market_id": request.market_id, "code": e.code},
            )
            return {"ok": False, "error": str(e), "code": e.code}
        except Exception as e:
            logger.exception(f"Unexpected failure for {request.market_id}")
            return {"ok": False, "error": str(e), "code": "INTERNAL_ERROR"}

    def _execute(self, request: IndicatorRequest) -> dict[str, Any]:
        if len(request.indicators) > MAX_INDICATORS:
            raise RequestError(
                f"Too many indicators requested. Maximum is {MAX_INDICATORS}."
            )

        warnings: list[dict[str, Any]] = []
        specs = self._resolve_specs(request.indicators)
        max_lookback = max((s.required_bars for s in specs), default=0)

        from_ms, to_ms = self._resolve_window(request, warnings)
        count_back = max_lookback + (
            request.window_size if request.mode == "window" else SNAPSHOT_BUFFER_BARS
        )

        raw_bars = self._provider.get_bars(
            request.market_id, request.resolution, count_back, from_ms, to_ms
        )
        if not raw_bars:
            raise ProviderError(self._provider.name, request.market_id, "No bars returned")

        if not request.include_incomplete_last_bar:
            raw_bars = self._drop_incomplete_bar(raw_bars, request.resolution, warnings)
        if not raw_bars:
            raise InsufficientDataError(required=max_lookback, available=0)

        if len(raw_bars) < max_lookback:
            if request.strict:
                raise InsufficientDataError(required=max_lookback, available=len(raw_bars))
            warnings.append(
                {
                    "code": "INSUFFICIENT_BARS",
                    "details": {"required": max_lookback, "available": len(raw_bars)},
                }
            )

        if request.vwap_anchor == "session" and any(
            s.family is IndicatorFamily.VWAP for s in specs
        ):
            warnings.append(
                {
                    "code": "VWAP_ANCHOR_UNSUPPORTED",
                    "details": {"requested": "session", "applied": "window"},
                }
            )

        try:
            bars = decode_bars(raw_bars, self._price_decimals, self._volume_decimals)
        except BarFormatError as e:
            raise ProviderError(self._provider.name, request.market_id, str(e)) from e

        results = self._calculate(specs, bars, request)

        for warning in warnings:
            logger.warning(
                f"Indicator warning {warning['code']}",
                extra={"market_id": request.market_id, "details": warning.get("details")},
            )

        if request.mode == "window":
            return self._format_window(request, specs, bars, results, from_ms, to_ms, warnings)
        return self._format_snapshot(request, bars, results, from_ms, to_ms, warnings)

    @staticmethod
    def _resolve_specs(indicators: list[str]) -> list[IndicatorSpec]:
        """Resolve identifiers, dropping duplicates after normalization."""
        specs: dict[str, IndicatorSpec] = {}
        for name in indicators:
            spec = resolve_indicator(name)
            specs.setdefault(spec.name, spec)
        return list(specs.values())

    def _resolve_window(
        self, request: IndicatorRequest, warnings: list[dict[str, Any]]
    ) -> tuple[int, int]:
        """Explicit from/to beat the period preset; asOf beats `to`."""
        if request.from_ms is not None and request.to_ms is not None:
            from_ms, to_ms = request.from_ms, request.to_ms
        else:
            now = self._clock()
            span = PERIOD_MS.get(request.period, PERIOD_MS["24h"])
            from_ms, to_ms = now - span, now

        if request.as_of is not None:
            to_ms = request.as_of
            warnings.append({"code": "AS_OF_TIMESTAMP", "details": {"asOf": request.as_of}})

        return from_ms, to_ms

    def _drop_incomplete_bar(
        self,
        raw_bars: list[Any],
        resolution: str,
        warnings: list[dict[str, Any]],
    ) -> list[Any]:
        last = raw_bars[-1]
        if self._clock() - int(last["timestamp"]) >= resolution_duration_ms(resolution):
            return raw_bars

        warnings.append(
            {"code": "INCOMPLETE_LAST_BAR", "details": {"timestamp": last["timestamp"]}}
        )
        return raw_bars[:-1]

    def _calculate(
        self,
        specs: list[IndicatorSpec],
        bars: pd.DataFrame,
        request: IndicatorRequest,
    ) -> dict[str, IndicatorResult]:
        results: dict[str, IndicatorResult] = {}
        for spec in specs:
            result = calculate_indicator(spec, bars, request.price_source)  # type: ignore[arg-type]

            if result is None:
                reason = (
                    "UNKNOWN_INDICATOR"
                    if spec.family is IndicatorFamily.UNKNOWN
                    else "INSUFFICIENT_BARS"
                )
                if request.strict:
                    raise IndicatorComputationError(
                        spec.name, f"Failed to calculate indicator ({reason})"
                    )
                result = IndicatorResult(
                    value=None,
                    error=reason,
                    meta={
                        "requiredBars": spec.required_bars,
                        "providedBars": len(bars),
                        "warmupBars": 0,
                    },
                )
            elif result.error is not None and request.strict:
                raise IndicatorComputationError(
                    spec.name, f"Failed to calculate indicator: {result.error}"
                )

            results[spec.name] = result
        return results

    def _format_snapshot(
        self,
        request: IndicatorRequest,
        bars: pd.DataFrame,
        results: dict[str, IndicatorResult],
        from_ms: int,
        to_ms: int,
        warnings: list[dict[str, Any]],
    ) -> dict[str, Any]:
        current_price = float(bars["close"].iloc[-1])

        output: dict[str, Any] = {
            "marketId": request.market_id,
            "resolution": request.resolution,
            "from": from_ms,
            "to": to_ms,
            "bars": len(bars),
            "asOf": to_ms,
            "currentPrice": current_price,
            "currentPriceSource": "last_close",
            "warnings": warnings,
            "indicators": {name: r.to_dict() for name, r in results.items()},
            "derived": compute_derived_fields(results, current_price),
        }

        if request.micro_summary:
            output["microSummary"] = classify_regime(results, current_price).to_dict()

        logger.info(
            f"Computed {len(results)} indicators for {request.market_id}",
            extra={"mode": "snapshot", "bars": len(bars)},
        )
        return output

    def _format_window(
        self,
        request: IndicatorRequest,
        specs: list[IndicatorSpec],
        bars: pd.DataFrame,
        results: dict[str, IndicatorResult],
        from_ms: int,
        to_ms: int,
        warnings: list[dict[str, Any]],
    ) -> dict[str, Any]:
        tail = bars.tail(request.window_size)
        timestamps = [int(ts) for ts in tail["timestamp"]]

        arrays: dict[str, Any] = {}
        for spec in specs:
            if not results[spec.name].ok:
                arrays[spec.name] = None
                continue
            output = indicator_series(spec, bars, request.price_source)  # type: ignore[arg-type]
            arrays[spec.name] = _window_values(output, len(timestamps))

        logger.info(
            f"Computed {len(results)} indicator windows for {request.market_id}",
            extra={"mode": "window", "points": len(timestamps)},
        )
        return {
            "marketId": request.market_id,
            "resolution": request.resolution,
            "from": from_ms,
            "to": to_ms,
            "bars": len(timestamps),
            "warnings": warnings,
            "timestamps": timestamps,
            "indicators": arrays,
        }


_WINDOW_KEYS = {"percent_b": "percentB"}


def _clean(values: pd.Series) -> list[float | None]:
    array = values.to_numpy(dtype=float)
    return [float(v) if np.isfinite(v) else None for v in array]


def _window_values(
    output: pd.Series | pd.DataFrame | None, points: int
) -> list[float | None] | dict[str, list[float | None]] | None:
    """Last `points` values; multi-line indicators become one list per line."""
    if output is None:
        return None
    tail = output.tail(points)
    if isinstance(tail, pd.DataFrame):
        return {_WINDOW_KEYS.get(col, col): _clean(tail[col]) for col in tail.columns}
    return _clean(tail)
