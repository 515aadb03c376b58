"""AWS Lambda entry point.

Mangum translates API Gateway events into ASGI, letting the FastAPI app
run unchanged on Lambda. Events Mangum cannot map to an HTTP request are
answered with a 400 reply instead of an unhandled error.
"""

import json

from mangum import Mangum

from src.config.settings import get_settings
from src.logging.access import get_logger, setup_logging
from src.main import app

setup_logging()

handler = Mangum(app, lifespan="off", api_gateway_base_path=get_settings().api_gateway_base_path)


def lambda_handler(event, context) -> dict:
    if not isinstance(event, dict) or not _is_http_event(event, context):
        get_logger("gateway").warning(
            "Unsupported invocation event",
            extra={"log_data": {
                "event_type": type(event).__name__,
                "event_keys": sorted(event) if isinstance(event, dict) else [],
            }},
        )
        return {
            "statusCode": 400,
            "headers": {"content-type": "application/json"},
            "body": json.dumps({"error": "Unsupported invocation event"}),
            "isBase64Encoded": False,
        }
    return handler(event, context)


def _is_http_event(event: dict, context) -> bool:
    try:
        handler.infer(event, context)
    except RuntimeError:
        return False
    return True
