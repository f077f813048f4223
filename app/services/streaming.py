"""
Server-Sent Events relay.

Provider chunks are pushed into an ``EventChannel`` by a background relay
task; the HTTP response drains the channel. A write to a channel whose
consumer has gone away raises ``TransportClosed``, which ends the relay
without reporting anything further.
"""

import asyncio
import logging
from typing import Any, AsyncIterator

from fastapi.responses import StreamingResponse

from app.schemas.chat import DoneEvent, ErrorEvent, StreamEvent, TokenEvent

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

# Strong references to running relays; the provider call may outlive the client
_active_relays: set[asyncio.Task] = set()


class TransportClosed(Exception):
    """The client is gone; nothing more can be delivered."""


def encode_event(event: StreamEvent) -> str:
    return f"data: {event.model_dump_json()}\n\n"


class EventChannel:
    """Single-producer / single-consumer queue of encoded SSE frames."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: StreamEvent) -> None:
        if self._closed:
            raise TransportClosed("event channel is closed")
        self._queue.put_nowait(encode_event(event))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    def disconnect(self) -> None:
        """Consumer side: the client stopped reading."""
        self._closed = True

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


def chunk_text(chunk: Any) -> str:
    return getattr(chunk, "text", None) or ""


async def relay(chunks: AsyncIterator[Any], channel: EventChannel) -> None:
    """
    Forward provider chunks as token events, then one done or error event.

    Never raises: a closed channel stops the relay silently, any other failure
    becomes the terminating error event.
    """
    try:
        async for chunk in chunks:
            text = chunk_text(chunk)
            if not text:
                continue
            try:
                channel.send(TokenEvent(token=text))
            except TransportClosed:
                logger.info("Client disconnected, stopping stream")
                return

        try:
            channel.send(DoneEvent())
            channel.close()
        except TransportClosed:
            logger.info("Client disconnected during completion")

    except Exception as exc:
        logger.error("Streaming error: %s", exc)
        try:
            channel.send(ErrorEvent(message=str(exc) or "Streaming error occurred"))
            channel.close()
        except TransportClosed:
            logger.error("Failed to send error via stream: client already gone")


def sse_response(chunks: AsyncIterator[Any]) -> StreamingResponse:
    """Wrap a provider chunk iterator in a text/event-stream response."""
    channel = EventChannel()

    async def body() -> AsyncIterator[str]:
        task = asyncio.create_task(relay(chunks, channel))
        _active_relays.add(task)
        task.add_done_callback(_active_relays.discard)
        task.add_done_callback(lambda _: channel.close())
        try:
            async for frame in channel.frames():
                yield frame
        finally:
            channel.disconnect()

    return StreamingResponse(body(), media_type="text/event-stream", headers=SSE_HEADERS)
