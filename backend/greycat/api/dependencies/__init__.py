"""
Centralized dependency injection for GreyCat routes.
"""

from .auth import require_user_id
from .services import (
    get_broadcast_hub,
    get_channel_service,
    get_message_service,
    get_user_directory,
)

__all__ = [
    "require_user_id",
    "get_broadcast_hub",
    "get_channel_service",
    "get_message_service",
    "get_user_directory",
]
