"""
Chat-stream router – POST /api/chat-stream.
Forwards a text/image message to Gemini and streams tokens back as SSE.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.schemas.chat import ChatStreamRequest, ConfigErrorResponse, UpstreamErrorResponse
from app.services.gemini import (
    build_contents,
    build_tools,
    classify_upstream_error,
    generate_stream_with_fallback,
    get_client,
    select_model,
)
from app.services.streaming import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def _error(status_code: int, error: str, hint: str | None = None, debug: str | None = None):
    body = ConfigErrorResponse(error=error, hint=hint, debug=debug)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post(
    "/chat-stream",
    responses={
        200: {"content": {"text/event-stream": {}}},
        400: {"model": ConfigErrorResponse},
        401: {"model": UpstreamErrorResponse},
        429: {"model": UpstreamErrorResponse},
        500: {"model": ConfigErrorResponse},
        503: {"model": UpstreamErrorResponse},
    },
    summary="Stream a Gemini answer token by token",
)
async def chat_stream(request: Request, settings: Settings = Depends(get_settings)):
    """
    1. Check the Gemini credential.
    2. Decode and validate the JSON body.
    3. Pick the model and (for the internet tier) the search tool.
    4. Open the provider stream, retrying once without grounding if needed.
    5. Relay chunks as `data: {...}` events, ending with done or error.
    """
    if not settings.gemini_configured:
        logger.error("GEMINI_API_KEY is missing or empty")
        return _error(
            500,
            "API configuration is missing. Check environment variables.",
            hint="Add GEMINI_API_KEY to your environment variables",
            debug="Environment variable GEMINI_API_KEY is not set or empty",
        )

    try:
        body = await request.json()
    except ValueError as exc:
        logger.warning("Failed to parse request JSON: %s", exc)
        return _error(
            400,
            "Invalid request format",
            hint="Request body must be valid JSON",
            debug="JSON parsing failed",
        )

    if not isinstance(body, dict):
        return _error(400, "Invalid request format", hint="Request body must be a JSON object")

    message = body.get("message")
    if not message:
        return _error(400, "Message is required")

    if not isinstance(message, str) or len(message) > settings.max_message_length:
        return _error(
            400,
            f"Message must be a string of at most {settings.max_message_length:,} characters",
        )

    try:
        chat = ChatStreamRequest.model_validate(body)
    except ValidationError as exc:
        logger.warning("Request validation failed: %s", exc.errors())
        return _error(400, "Invalid request fields", debug=str(exc))

    model_id = select_model(chat.ai_model, settings)

    try:
        client = get_client(settings)
    except Exception:
        logger.exception("Failed to initialise Gemini client")
        return _error(
            500,
            "Could not initialise the AI model",
            hint="Check that your API key is valid",
            debug=f"Model initialization failed for {model_id}",
        )

    tools = build_tools(chat.ai_model, chat.use_grounding)

    contents = build_contents(chat.message, image=chat.image, images=chat.images)

    logger.info(
        "POST /api/chat-stream  tier=%s model=%s grounding=%s msg_len=%d images=%d",
        chat.ai_model,
        model_id,
        bool(tools),
        len(chat.message),
        len(chat.images) if chat.images else int(bool(chat.image)),
    )

    try:
        chunks = await generate_stream_with_fallback(
            client,
            model_id,
            contents,
            tools=tools,
            use_grounding=chat.use_grounding,
        )
    except Exception as exc:
        failure = classify_upstream_error(exc)
        logger.exception("Streaming API error (status=%d)", failure.status_code)
        error_body = UpstreamErrorResponse(
            error="An error occurred while processing your message",
            details=failure.details,
            hint=failure.hint,
        )
        return JSONResponse(status_code=failure.status_code, content=error_body.model_dump())

    return sse_response(chunks)
