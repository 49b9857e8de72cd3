# backend/greycat/services/messaging/__init__.py
"""
Real-time messaging package.

Architecture:
- BroadcastHub keeps per-channel topics of local connections
  (WebSocket and SSE) and fans events out without suspending
- An optional BroadcastRelay (core.broadcast) mirrors events across
  worker processes through Broadcaster
"""

from .events import (
    EventType,
    build_event,
    build_message_deleted_event,
    build_message_edited_event,
    build_message_pinned_event,
    build_new_message_event,
    build_reaction_updated_event,
    build_reply_added_event,
    serialize_message,
)
from .hub import BroadcastHub, Connection, StreamConnection, WebSocketConnection
from .sse_stream import create_channel_stream

__all__ = [
    # Hub
    "BroadcastHub",
    "Connection",
    "StreamConnection",
    "WebSocketConnection",
    # SSE
    "create_channel_stream",
    # Events
    "EventType",
    "build_event",
    "build_new_message_event",
    "build_message_deleted_event",
    "build_reaction_updated_event",
    "build_message_edited_event",
    "build_message_pinned_event",
    "build_reply_added_event",
    "serialize_message",
]
