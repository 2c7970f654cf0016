"""Error taxonomy for the indicator pipeline.

Every fatal condition carries a machine-readable `code` so the pipeline can
return it in a structured failure result.
"""


class IndicatorsError(Exception):
    """Base class for pipeline errors."""

    code = "INDICATORS_ERROR"


class RequestError(IndicatorsError):
    """The request is invalid; nothing was computed."""

    code = "REQUEST_ERROR"


class InsufficientDataError(IndicatorsError):
    """Not enough bars for the requested indicators."""

    code = "INSUFFICIENT_DATA"

    def __init__(self, required: int, available: int) -> None:
        """Initialize InsufficientDataError.

        Args:
            required: Bars needed by the longest lookback.
            available: Bars left after trimming.
        """
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient bars. Required: {required}, Available: {available}"
        )


class IndicatorComputationError(IndicatorsError):
    """An indicator produced no usable value."""

    code = "INDICATOR_ERROR"

    def __init__(self, indicator: str, message: str) -> None:
        """Initialize IndicatorComputationError.

        Args:
            indicator: Normalized indicator identifier.
            message: Error description.
        """
        self.indicator = indicator
        super().__init__(f"{indicator}: {message}")
