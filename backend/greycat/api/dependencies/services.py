# backend/greycat/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. All services of one
request share that request's session.
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.activity_service import ActivityTracker
from ...services.channel_service import ChannelService
from ...services.message_service import MessageService
from ...services.messaging.hub import BroadcastHub
from ...services.user_directory import UserDirectory


def get_broadcast_hub(request: Request) -> BroadcastHub:
    """The process-wide hub created in the application lifespan."""
    hub: BroadcastHub = request.app.state.hub
    return hub


def get_user_directory(db: Session = Depends(get_db)) -> UserDirectory:
    return UserDirectory(db)


def get_channel_service(
    db: Session = Depends(get_db),
    users: UserDirectory = Depends(get_user_directory),
) -> ChannelService:
    return ChannelService(db, users=users)


def get_message_service(
    db: Session = Depends(get_db),
    hub: BroadcastHub = Depends(get_broadcast_hub),
    users: UserDirectory = Depends(get_user_directory),
    channels: ChannelService = Depends(get_channel_service),
) -> MessageService:
    return MessageService(
        db,
        hub=hub,
        users=users,
        channels=channels,
        activity=ActivityTracker(db),
    )
