"""
AWS Lambda entry point for the chat-stream API.

Mangum translates API Gateway events to ASGI. Streaming responses are
buffered by API Gateway, so clients receive the full event list at once;
run `uvicorn app.main:app` behind a regular load balancer for live tokens.
"""

import logging
from mangum import Mangum
from app.main import app

logger = logging.getLogger()
logger.setLevel(logging.INFO)

handler = Mangum(app, lifespan="off")


def lambda_handler(event, context):
    """
    Parameters
    ----------
    event : dict
        API Gateway proxy event
    context : LambdaContext
        Lambda runtime information

    Returns
    -------
    dict
        API Gateway proxy response
    """
    request_context = event.get("requestContext", {})
    logger.info(
        "Chat-stream invocation request_id=%s path=%s",
        request_context.get("requestId", "unknown"),
        event.get("rawPath") or event.get("path", ""),
    )
    return handler(event, context)
