"""
Database models for the GreyCat channel backend.

- User: profile projection used for author/member summaries
- Channel, ChannelMember, ChannelModerator: channel directory
- Message, MessageReaction, MessageReply: message ledger
"""

from .channel import Channel, ChannelMember, ChannelModerator
from .message import Message, MessageReaction, MessageReply
from .user import User

__all__ = [
    "Channel",
    "ChannelMember",
    "ChannelModerator",
    "Message",
    "MessageReaction",
    "MessageReply",
    "User",
]
