"""SSE endpoint — long-lived snapshot stream for one tracked event.

Learn: Each client connects to /api/v1/stream/{event_id}. The generator:
1. Registers a Subscriber on the event's hub (cached snapshot is replayed)
2. Makes sure an upstream session is running for the event
3. Drains the Subscriber queue into "data:" frames
4. Sends a ": keep-alive" comment after every idle interval so proxies
   don't time out the connection

When the client disconnects, Starlette cancels the generator and the
finally block unsubscribes. If that was the last subscriber, the hub
tells the registry, which stops the upstream session.
"""

import asyncio
from typing import AsyncIterator

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from liverelay.api.deps import get_registry
from liverelay.relay.registry import SessionRegistry
from liverelay.schemas.snapshot import Snapshot

logger = structlog.get_logger()
router = APIRouter()

KEEPALIVE_FRAME = ": keep-alive\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def format_event(snapshot: Snapshot) -> str:
    return f"data: {snapshot.to_json()}\n\n"


async def event_stream(
    registry: SessionRegistry,
    event_id: str,
    keepalive_interval: float,
) -> AsyncIterator[str]:
    """Yield SSE frames for one subscriber until the consumer stops."""
    hub = registry.hub(event_id)
    subscriber = registry.new_subscriber(event_id)
    hub.subscribe(subscriber)
    logger.info("stream.subscribed", event_id=event_id, subscriber=subscriber.id)

    try:
        await registry.ensure(event_id)
        while True:
            try:
                snapshot = await asyncio.wait_for(
                    subscriber.queue.get(), timeout=keepalive_interval
                )
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            yield format_event(snapshot)
    finally:
        subscriber.close()
        hub.unsubscribe(subscriber)
        logger.info(
            "stream.unsubscribed",
            event_id=event_id,
            subscriber=subscriber.id,
            dropped=subscriber.dropped,
        )


@router.get("/stream/{event_id}")
async def stream_event(
    event_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Stream normalized snapshots for an event as Server-Sent Events."""
    return StreamingResponse(
        event_stream(registry, event_id, registry.config.keepalive_interval),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
