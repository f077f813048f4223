"""
Gemini service – thin wrapper around the google-genai SDK.
Keeps all provider interaction in one place so routers never touch the SDK.

Supports:
  • Model selection per tier (pro / smart / internet)
  • Google Search grounding for the internet tier
  • Text + inline image content
  • Streaming generation with a one-shot retry when grounding is unsupported
  • Classification of provider failures into HTTP status codes
"""

import base64
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator

from google import genai
from google.genai import types

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

TIER_PRO = "pro"
TIER_SMART = "smart"
TIER_INTERNET = "internet"

IMAGE_MIME_TYPE = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:image/\w+;base64,")
_NON_BASE64_RE = re.compile(r"[^A-Za-z0-9+/]")

# Provider wording when the selected model rejects the search tool
GROUNDING_UNSUPPORTED_MARKERS = (
    "Search Grounding is not supported",
    "google_search_retrieval is not supported",
)


# ── Singleton client ────────────────────────────────────────────────────────

_client = None


def get_client(settings: Settings | None = None):
    """Return a reusable genai client (created once)."""
    global _client
    if _client is None:
        settings = settings or get_settings()
        _client = genai.Client(api_key=settings.gemini_api_key)
    return _client


# ── Request assembly ────────────────────────────────────────────────────────


def select_model(tier: str, settings: Settings | None = None) -> str:
    """Map a requested tier to a concrete model id; unknown tiers get the smart model."""
    settings = settings or get_settings()
    if tier == TIER_PRO:
        return settings.gemini_pro_model
    if tier == TIER_INTERNET:
        return settings.gemini_internet_model
    return settings.gemini_smart_model


def build_tools(tier: str, use_grounding: bool) -> list[types.Tool]:
    """Google Search grounding is only offered on the internet tier."""
    if tier == TIER_INTERNET and use_grounding:
        return [types.Tool(google_search=types.GoogleSearch())]
    return []


def decode_image(data: str) -> bytes:
    """
    Strip an optional data-URI prefix and base64-decode the payload leniently.

    Characters outside the base64 alphabet are dropped, URL-safe characters
    are accepted and missing padding is restored, so any string decodes.
    """
    payload = _DATA_URI_RE.sub("", data, count=1)
    payload = _NON_BASE64_RE.sub("", payload.replace("-", "+").replace("_", "/"))
    if len(payload) % 4 == 1:
        # a lone trailing character carries no complete byte
        payload = payload[:-1]
    return base64.b64decode(payload + "=" * (-len(payload) % 4))


def _image_part(data: str) -> types.Part:
    return types.Part.from_bytes(data=decode_image(data), mime_type=IMAGE_MIME_TYPE)


def build_parts(
    message: str,
    image: str | None = None,
    images: list[str] | None = None,
) -> list[types.Part]:
    """
    Text part first, then image parts.

    ``images`` wins over the legacy ``image`` field; the two are never mixed.
    """
    parts = [types.Part.from_text(text=message)]
    if images:
        parts.extend(_image_part(img) for img in images)
    elif image:
        parts.append(_image_part(image))
    return parts


def build_contents(
    message: str,
    image: str | None = None,
    images: list[str] | None = None,
) -> list[types.Content]:
    return [types.Content(role="user", parts=build_parts(message, image, images))]


# ── Streaming call ──────────────────────────────────────────────────────────

_EMPTY = object()


def is_grounding_unsupported(exc: Exception) -> bool:
    message = str(exc)
    return any(marker in message for marker in GROUNDING_UNSUPPORTED_MARKERS)


async def _start_stream(
    client,
    model_id: str,
    contents: list[types.Content],
    tools: list[types.Tool],
) -> AsyncIterator[Any]:
    """
    Open the stream and wait for its first chunk.

    The SDK only sends the request when the stream is first iterated, so
    provider errors surface here
    rather than in the middle of the relay.
    """
    config = types.GenerateContentConfig(tools=tools) if tools else None
    logger.info(
        "Invoking Gemini model=%s parts=%d tools=%d",
        model_id,
        sum(len(c.parts or []) for c in contents),
        len(tools),
    )
    stream = await client.aio.models.generate_content_stream(
        model=model_id,
        contents=contents,
        config=config,
    )
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        first = _EMPTY
    return _prepend(first, stream)


async def _prepend(first: Any, rest: AsyncIterator[Any]) -> AsyncIterator[Any]:
    if first is _EMPTY:
        return
    yield first
    async for chunk in rest:
        yield chunk


async def generate_stream_with_fallback(
    client,
    model_id: str,
    contents: list[types.Content],
    *,
    tools: list[types.Tool],
    use_grounding: bool,
) -> AsyncIterator[Any]:
    """
    Open a streaming generation call and return the chunk iterator.

    If the model rejects search grounding, retry exactly once with the tool
    list removed. The retry's own failure is raised as-is.
    """
    try:
        return await _start_stream(client, model_id, contents, tools)
    except Exception as exc:
        if use_grounding and is_grounding_unsupported(exc):
            logger.warning(
                "Grounding not supported by %s, retrying without tools: %s", model_id, exc
            )
            return await _start_stream(client, model_id, contents, [])
        raise


# ── Error classification ────────────────────────────────────────────────────

_HINTS = {
    401: "Check GEMINI_API_KEY in your environment variables",
    429: "Wait a moment and try again",
    503: "Check your network connection",
    500: "Try again or contact support",
}


@dataclass(frozen=True)
class UpstreamFailure:
    status_code: int
    details: str
    hint: str


def classify_upstream_error(exc: BaseException) -> UpstreamFailure:
    """Map a provider failure to an HTTP status by inspecting its message."""
    message = str(exc)
    if "API key" in message:
        status, details = 401, f"API key problem: {message}"
    elif "quota" in message or "limit" in message:
        status, details = 429, f"API limit reached: {message}"
    elif "network" in message or "fetch" in message:
        status, details = 503, f"Network problem: {message}"
    else:
        status, details = 500, message or "Unknown error"
    return UpstreamFailure(status_code=status, details=details, hint=_HINTS[status])
