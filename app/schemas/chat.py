"""
Pydantic models for the chat-stream endpoint: request body, streamed
events and JSON error bodies.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-01T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Requests ────────────────────────────────────────────────────────────────


class ChatStreamRequest(BaseModel):
    """Body for POST /api/chat-stream."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(
        ...,
        min_length=1,
        description="User message to send to the AI model.",
    )
    image: str | None = Field(
        default=None,
        description="Legacy single base64 image (optional data-URI prefix).",
    )
    images: list[str] | None = Field(
        default=None,
        description="Ordered base64 images. Takes precedence over `image`.",
    )
    use_grounding: bool = Field(
        default=True,
        alias="useGrounding",
        description="Attach Google Search grounding (internet tier only).",
    )
    ai_model: str = Field(
        default="smart",
        alias="aiModel",
        description="Model tier: pro, smart or internet. Unknown values fall back to smart.",
    )


# ── Stream events ───────────────────────────────────────────────────────────


class TokenEvent(BaseModel):
    token: str
    timestamp: str = Field(default_factory=utc_timestamp)


class DoneEvent(BaseModel):
    done: bool = True


class ErrorEvent(BaseModel):
    error: bool = True
    message: str


StreamEvent = TokenEvent | DoneEvent | ErrorEvent


# ── Responses ───────────────────────────────────────────────────────────────


class ConfigErrorResponse(BaseModel):
    """Pre-stream validation or configuration failure."""

    error: str
    hint: str | None = None
    debug: str | None = None


class UpstreamErrorResponse(BaseModel):
    """Failure while invoking the provider, before any event was streamed."""

    error: str
    details: str
    timestamp: str = Field(default_factory=utc_timestamp)
    hint: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    gemini_configured: bool
