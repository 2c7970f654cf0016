"""Indicators Lambda Handler.

Invoked by the agent host with an indicator request payload; returns the
snapshot or window response.
"""

from typing import Any

from src.modules.data.providers.o2 import O2Provider
from src.modules.pipeline.orchestrator import IndicatorPipeline
from src.modules.pipeline.request import IndicatorRequest
from src.shared.config import load_config
from src.shared.errors import RequestError
from src.shared.logger import get_logger

logger = get_logger(__name__)

STATUS_BY_CODE = {
    "REQUEST_ERROR": 400,
    "INSUFFICIENT_DATA": 422,
    "INDICATOR_ERROR": 422,
    "PROVIDER_ERROR": 502,
}


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler for indicator requests.

    Args:
        event: Request payload (marketId, indicators, resolution, ...).
            An optional `apiBaseUrl` overrides the configured API URL.
        context: Lambda context.

    Returns:
        `{"statusCode": int, "body": {"ok": bool, ...}}`.
    """
    logger.info("Starting Indicators Lambda")

    try:
        request = IndicatorRequest.from_payload(event)
    except RequestError as e:
        logger.warning(f"Rejected indicator request: {e}")
        return {"statusCode": 400, "body": {"ok": False, "error": str(e), "code": e.code}}

    try:
        config = load_config()
        provider = O2Provider(
            (event.get("apiBaseUrl") or "").strip() or config.api_base_url,
            timeout=config.http_timeout,
        )
        pipeline = IndicatorPipeline(
            provider,
            price_decimals=config.price_decimals,
            volume_decimals=config.volume_decimals,
        )

        result = pipeline.run(request)

        if result["ok"]:
            return {"statusCode": 200, "body": result}
        return {"statusCode": STATUS_BY_CODE.get(result["code"], 500), "body": result}

    except Exception as e:
        logger.exception("Fatal error in Indicators Lambda")
        return {"statusCode": 500, "body": {"ok": False, "error": f"Internal Server Error: {str(e)}"}}
