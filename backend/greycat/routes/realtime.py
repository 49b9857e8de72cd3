# backend/greycat/routes/realtime.py
"""
Real-time routes.

    WS  /ws                          - Topic protocol (joinRoom / leaveRoom)
    GET /channels/{channel_id}/stream - Read-only SSE stream of one channel

WebSocket protocol:
    client → server  {"event": "joinRoom",  "channelId": "<id>"}
                     {"event": "leaveRoom", "channelId": "<id>"}
    server → client  {"event": "roomJoined" | "roomLeft", "data": {"channelId": "<id>"}}
                     {"event": "new_message" | "message_deleted" | ..., "data": {...}}
                     {"event": "error", "data": {"message": "..."}}

Topics are readable without authentication, mirroring message history.
"""

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from sse_starlette.sse import EventSourceResponse

from ..api.dependencies.services import get_broadcast_hub, get_channel_service
from ..auth import Authenticated, resolve_user
from ..core.exceptions import NotFoundException
from ..services.channel_service import ChannelService
from ..services.messaging.hub import BroadcastHub, WebSocketConnection
from ..services.messaging.sse_stream import create_channel_stream

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

JOIN_ROOM = "joinRoom"
LEAVE_ROOM = "leaveRoom"


def _error_frame(message: str) -> Dict[str, Any]:
    return {"event": "error", "data": {"message": message}}


def handle_client_frame(
    hub: BroadcastHub, connection: WebSocketConnection, raw: str
) -> Optional[Dict[str, Any]]:
    """
    Apply one client frame to the hub.

    Returns:
        The reply frame to send back, if any
    """
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        return _error_frame("Invalid JSON")

    if not isinstance(frame, dict):
        return _error_frame("Frame must be an object")

    event = frame.get("event")
    channel_id = frame.get("channelId")
    if event not in (JOIN_ROOM, LEAVE_ROOM):
        return _error_frame(f"Unknown event: {event}")
    if not isinstance(channel_id, str) or not channel_id:
        return _error_frame("channelId is required")

    if event == JOIN_ROOM:
        hub.subscribe(connection.id, channel_id)
        return {"event": "roomJoined", "data": {"channelId": channel_id}}

    hub.unsubscribe(connection.id, channel_id)
    return {"event": "roomLeft", "data": {"channelId": channel_id}}


@router.websocket("/ws")
async def channel_socket(websocket: WebSocket) -> None:
    hub: BroadcastHub = websocket.app.state.hub
    await websocket.accept()

    identity = resolve_user(websocket)
    user_id = identity.user_id if isinstance(identity, Authenticated) else None
    connection = hub.register(WebSocketConnection())
    logger.info(
        f"[WS] Connection {connection.id} opened",
        extra={"connection_id": connection.id, "user_id": user_id},
    )

    async def reader() -> None:
        while True:
            raw = await websocket.receive_text()
            reply = handle_client_frame(hub, connection, raw)
            if reply is not None:
                # Replies share the outbound queue so frame order is preserved
                connection.offer(reply)

    async def writer() -> None:
        while True:
            frame = await connection.receive()
            await websocket.send_json(frame)

    tasks = [asyncio.create_task(reader()), asyncio.create_task(writer())]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error(f"[WS] Connection {connection.id} failed: {exc}", exc_info=exc)
    finally:
        for task in tasks:
            task.cancel()
        hub.disconnect(connection.id)
        logger.info(f"[WS] Connection {connection.id} closed")


@router.get("/channels/{channel_id}/stream")
async def stream_channel(
    channel_id: str,
    request: Request,
    hub: BroadcastHub = Depends(get_broadcast_hub),
    service: ChannelService = Depends(get_channel_service),
) -> EventSourceResponse:
    """Server-Sent Events for one channel. The DB session is released before streaming."""
    try:
        await asyncio.to_thread(service.get_channel_or_raise, channel_id)
    except NotFoundException as e:
        raise NotFoundException(
            e.message, code=e.code, status_code=status.HTTP_404_NOT_FOUND
        ) from e
    finally:
        service.db.close()

    async def event_generator() -> AsyncGenerator[Dict[str, str], None]:
        stream = create_channel_stream(hub, channel_id)
        try:
            async for event in stream:
                if await request.is_disconnected():
                    logger.info(f"[SSE-STREAM] Client left channel {channel_id}")
                    break
                yield event
        finally:
            # Unsubscribes the stream's connection from the hub
            await stream.aclose()

    return EventSourceResponse(
        event_generator(),
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
        },
    )
