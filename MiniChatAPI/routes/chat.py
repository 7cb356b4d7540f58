from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
import logging
import asyncio
from contextlib import suppress
from typing import Optional

from ..chat_broadcast import Broadcaster, KEEP_ALIVE_FRAME, format_sse_frame
from ..config import SSE_HEARTBEAT_INTERVAL
from ..dependencies import get_hub
from ..schemas import ChatAck, ChatMessageIn, StreamStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ChatStreamResponse(StreamingResponse):
    """Streaming response that always closes its generator so the subscriber deregisters."""

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
        finally:
            close = getattr(self.body_iterator, "aclose", None)
            if callable(close):
                await close()


def _heartbeat_task(interval: int) -> Optional[asyncio.Task]:
    if interval <= 0:
        return None
    return asyncio.create_task(asyncio.sleep(interval))


async def event_stream(hub: Broadcaster, heartbeat_interval: int = SSE_HEARTBEAT_INTERVAL):
    """
    SSE generator that yields every broadcast chat message and sends a
    heartbeat comment at regular intervals so the connection is not considered
    idle by proxies.

    The subscriber is registered when iteration starts and deregistered on
    every exit path, including cancellation on client disconnect.

    Args:
        hub (Broadcaster): The hub to subscribe to.
        heartbeat_interval (int): Seconds between keep-alive comments; 0 disables.

    Yields:
        str: SSE frames.
    """
    async with hub.subscribe() as sink:
        event_task = asyncio.create_task(sink.__anext__())
        heartbeat_task = _heartbeat_task(heartbeat_interval)
        try:
            while True:
                waiting = {event_task}
                if heartbeat_task is not None:
                    waiting.add(heartbeat_task)
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                if event_task in done:
                    try:
                        message = event_task.result()
                    except StopAsyncIteration:
                        return
                    yield format_sse_frame(message)
                    event_task = asyncio.create_task(sink.__anext__())

                if heartbeat_task is not None and heartbeat_task in done:
                    # SSE comment is ignored by clients but keeps the connection active
                    yield KEEP_ALIVE_FRAME
                    heartbeat_task = _heartbeat_task(heartbeat_interval)
        except Exception:
            logger.exception("Exception in chat event_stream")
            raise
        finally:
            for task in (event_task, heartbeat_task):
                if task is not None:
                    task.cancel()
            with suppress(asyncio.CancelledError, StopAsyncIteration):
                await event_task
            if heartbeat_task is not None:
                with suppress(asyncio.CancelledError):
                    await heartbeat_task


@router.get("/sse")
async def chat_stream(request: Request, hub: Broadcaster = Depends(get_hub)):
    """
    SSE endpoint streaming chat messages to the connected client.

    Returns:
        StreamingResponse: Server-Sent Events stream.
    """
    interval = getattr(request.app.state, "heartbeat_interval", SSE_HEARTBEAT_INTERVAL)
    return ChatStreamResponse(
        event_stream(hub, interval),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/sse/stats", response_model=StreamStatsResponse)
def chat_stream_stats(hub: Broadcaster = Depends(get_hub)):
    return {"subscribers": hub.subscriber_count}


@router.get("/chat")
async def send_chat_message(message: Optional[str] = Query(None), hub: Broadcaster = Depends(get_hub)):
    """
    Broadcast a chat message passed as a query parameter.

    Blank messages are ignored. The response never waits on delivery.

    Args:
        message (str, optional): The message text.
        hub (Broadcaster): The broadcast hub.

    Returns:
        Response: Empty 200 response.
    """
    text = (message or "").strip()
    if text:
        hub.publish(text)
    return Response(status_code=status.HTTP_200_OK)


@router.post("/chat", response_model=ChatAck, status_code=status.HTTP_202_ACCEPTED)
async def post_chat_message(payload: ChatMessageIn, hub: Broadcaster = Depends(get_hub)):
    """
    Broadcast a chat message sent as JSON.

    Args:
        payload (ChatMessageIn): The message body.
        hub (Broadcaster): The broadcast hub.

    Returns:
        ChatAck: Acknowledgment with the number of subscribers the message was
        handed to. This is not a delivery guarantee.
    """
    text = payload.message.strip()
    delivered = hub.publish(text) if text else 0
    return {"accepted": True, "delivered_to": delivered}
