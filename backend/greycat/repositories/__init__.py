"""
Repository layer for the GreyCat channel backend.

Repositories own all SQL; services own transactions.
"""

from .base_repository import BaseRepository
from .channel_repository import ChannelRepository
from .message_repository import MessageRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ChannelRepository",
    "MessageRepository",
    "UserRepository",
]
