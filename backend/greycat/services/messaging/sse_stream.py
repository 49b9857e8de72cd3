# backend/greycat/services/messaging/sse_stream.py
"""
Read-only SSE stream of one channel topic.

For clients that cannot hold a WebSocket: the stream registers a
StreamConnection with the hub, subscribes it to the channel and relays
every frame as an SSE event, with heartbeats while the topic is quiet.

This function is DB-free - channel lookups must be done before calling,
so no session is held open for the lifetime of the stream.
"""

import asyncio
from datetime import datetime, timezone
import json
import logging
from typing import AsyncGenerator, Dict, Optional

from ...core.config import settings
from .hub import BroadcastHub, StreamConnection

logger = logging.getLogger(__name__)


def format_frame(frame: Dict) -> Dict[str, str]:
    """Render a hub frame as an sse-starlette event dict."""
    return {"event": frame["event"], "data": json.dumps(frame["data"], default=str)}


def _heartbeat() -> Dict[str, str]:
    return {
        "event": "heartbeat",
        "data": json.dumps(
            {"type": "heartbeat", "timestamp": datetime.now(timezone.utc).isoformat()}
        ),
    }


async def create_channel_stream(
    hub: BroadcastHub,
    channel_id: str,
    heartbeat_interval: Optional[float] = None,
    connection: Optional[StreamConnection] = None,
) -> AsyncGenerator[Dict[str, str], None]:
    """
    Stream a channel topic until the client goes away.

    Args:
        hub: Broadcast hub to subscribe through
        channel_id: Channel topic to follow
        heartbeat_interval: Seconds of silence before a heartbeat event
        connection: Pre-built connection (defaults to a new StreamConnection)

    Yields:
        SSE event dicts with keys: event, data
    """
    interval = heartbeat_interval or settings.sse_heartbeat_interval
    conn = hub.register(connection or StreamConnection())
    hub.subscribe(conn.id, channel_id)

    try:
        yield {
            "event": "connected",
            "data": json.dumps(
                {
                    "channelId": channel_id,
                    "connectionId": conn.id,
                    "status": "connected",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            ),
        }
        logger.info(f"[SSE-STREAM] {conn.id} following channel {channel_id}")

        while True:
            try:
                frame = await asyncio.wait_for(conn.receive(), timeout=interval)
            except asyncio.TimeoutError:
                logger.debug(f"[SSE-HEARTBEAT] Sending heartbeat to {conn.id}")
                yield _heartbeat()
                continue
            yield format_frame(frame)
    except asyncio.CancelledError:
        logger.info(f"[SSE-STREAM] Stream cancelled for {conn.id}")
        raise
    finally:
        hub.disconnect(conn.id)
        logger.info(f"[SSE-STREAM] Closed stream {conn.id} on channel {channel_id}")
