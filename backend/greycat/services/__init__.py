# backend/greycat/services/__init__.py
"""
Service layer for GreyCat.

Services own business rules and transactions; repositories own SQL.
"""

from .activity_service import ActivityTracker
from .base import BaseService
from .channel_service import ChannelService
from .message_service import MessageService
from .user_directory import UserDirectory

__all__ = [
    "ActivityTracker",
    "BaseService",
    "ChannelService",
    "MessageService",
    "UserDirectory",
]
