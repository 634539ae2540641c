"""AWS Lambda handler for API Gateway requests.

The FastAPI application is built once per container and served through the
Mangum ASGI adapter on every invocation.
"""

import logging
import os
from typing import Any

from mangum import Mangum

logger = logging.getLogger(__name__)

_handler: Mangum | None = None


def get_mangum_handler() -> Mangum:
    """Build the application and its Mangum adapter on first use (cold start)."""
    global _handler
    if _handler is None:
        import main

        _handler = Mangum(main.app, lifespan="off")
        logger.info("Lambda application initialized")
    return _handler


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Serve one API Gateway request.

    Args:
        event: API Gateway event payload
        context: Lambda context object

    Returns:
        API Gateway response dict
    """
    logger.info(f"Received Lambda invocation, request_id: {getattr(context, 'aws_request_id', None)}")

    try:
        result: dict[str, Any] = get_mangum_handler()(event, context)
        return result

    except Exception as e:
        logger.exception(f"Unhandled error in Lambda handler: {e}")
        return {"statusCode": 500, "body": "Internal server error"}


# Warm the handler during cold start (skipped in tests)
if os.getenv("ENVIRONMENT") != "test":
    get_mangum_handler()
