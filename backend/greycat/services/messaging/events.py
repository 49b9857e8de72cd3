# backend/greycat/services/messaging/events.py
"""
Channel event type definitions and builders.

Every frame pushed to a channel topic has this structure:
{
    "event": str,   # Event name, e.g. "new_message"
    "data": dict    # Event-specific payload
}

Message payloads are full, author-resolved snapshots taken after the
write that produced them has committed.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ...models.message import Message, MessageReply
from ..user_directory import placeholder_summary


class EventType(str, Enum):
    """Valid channel event types."""

    NEW_MESSAGE = "new_message"
    MESSAGE_DELETED = "message_deleted"
    REACTION_UPDATED = "reaction_updated"
    MESSAGE_EDITED = "message_edited"
    MESSAGE_PINNED = "message_pinned"
    REPLY_ADDED = "reply_added"


def build_event(event_type: EventType, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a properly structured frame.

    Args:
        event_type: The type of event
        payload: Event-specific payload data

    Returns:
        Frame dict ready for publishing
    """
    return {"event": event_type.value, "data": payload}


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_reply(
    reply: MessageReply, summaries: Mapping[str, Dict[str, Any]]
) -> Dict[str, Any]:
    return {
        "id": reply.id,
        "user": summaries.get(reply.user_id) or placeholder_summary(reply.user_id),
        "text": reply.text,
        "edited": bool(reply.edited),
        "createdAt": _isoformat(reply.created_at),
    }


def serialize_message(
    message: Message, summaries: Mapping[str, Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Render a message with its author, reactions and replies.

    ``summaries`` maps user ids to user summaries; ids missing from it are
    rendered with the placeholder summary. System messages have no user.
    """
    user: Optional[Dict[str, Any]] = None
    if message.user_id:
        user = summaries.get(message.user_id) or placeholder_summary(message.user_id)

    return {
        "id": message.id,
        "channelId": message.channel_id,
        "user": user,
        "text": message.text,
        "attachments": list(message.attachments or []),
        "reactions": [
            {"emoji": reaction.emoji, "user": reaction.user_id} for reaction in message.reactions
        ],
        "replies": [serialize_reply(reply, summaries) for reply in message.replies],
        "pinned": bool(message.pinned),
        "edited": bool(message.edited),
        "deleted": bool(message.deleted),
        "system": bool(message.system),
        "createdAt": _isoformat(message.created_at),
        "updatedAt": _isoformat(message.updated_at),
    }


def build_new_message_event(message: Dict[str, Any]) -> Dict[str, Any]:
    """Build a new_message frame."""
    return build_event(EventType.NEW_MESSAGE, message)


def build_message_deleted_event(
    channel_id: str, message_id: str, soft: bool = False
) -> Dict[str, Any]:
    """Build a message_deleted frame."""
    return build_event(
        EventType.MESSAGE_DELETED,
        {"msgId": message_id, "channelId": channel_id, "soft": soft},
    )


def build_reaction_updated_event(message: Dict[str, Any]) -> Dict[str, Any]:
    """Build a reaction_updated frame."""
    return build_event(EventType.REACTION_UPDATED, message)


def build_message_edited_event(message: Dict[str, Any]) -> Dict[str, Any]:
    return build_event(EventType.MESSAGE_EDITED, message)


def build_message_pinned_event(message: Dict[str, Any]) -> Dict[str, Any]:
    return build_event(EventType.MESSAGE_PINNED, message)


def build_reply_added_event(message: Dict[str, Any]) -> Dict[str, Any]:
    return build_event(EventType.REPLY_ADDED, message)
