# backend/greycat/routes/channels.py
"""
Channel routes.

All business logic delegated to ChannelService / MessageService.
Responses use the envelope {success, message?, ...data}; expected
failures are raised as domain exceptions and rendered by the handlers
registered in main.

Endpoints:
    GET    /channels                              - Public channels by recent activity
    POST   /channels                              - Create a channel
    GET    /channels/{channel_id}                 - Channel detail with members
    POST   /channels/{channel_id}/join            - Join (idempotent)
    POST   /channels/{channel_id}/leave           - Leave (idempotent)
    POST   /channels/{channel_id}/members         - Add a member (moderator)
    POST   /channels/{channel_id}/messages        - Send a message
    GET    /channels/{channel_id}/messages        - Paginated history (oldest→newest)
    POST   /channels/{channel_id}/moderators      - Grant moderator
    DELETE /channels/{channel_id}/moderators/{id} - Revoke moderator
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies.auth import require_user_id
from ..api.dependencies.services import get_channel_service, get_message_service
from ..core.exceptions import NotFoundException
from ..schemas.channel import AddMemberRequest, AddModeratorRequest, CreateChannelRequest
from ..schemas.message import SendMessageRequest
from ..services.channel_service import ChannelService
from ..services.message_service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


@router.get("")
def list_channels(service: ChannelService = Depends(get_channel_service)) -> Dict[str, Any]:
    """List public channels, most recently active first. No auth required."""
    return {"success": True, "channels": service.list_public()}


@router.post("")
def create_channel(
    request: CreateChannelRequest,
    user_id: str = Depends(require_user_id),
    service: ChannelService = Depends(get_channel_service),
) -> Dict[str, Any]:
    channel = service.create(
        name=request.name,
        creator_id=user_id,
        title=request.title,
        description=request.description,
        is_private=request.is_private,
    )
    return {"success": True, "channel": channel}


@router.get("/{channel_id}")
def get_channel(
    channel_id: str, service: ChannelService = Depends(get_channel_service)
) -> Dict[str, Any]:
    """Channel detail. Unlike other lookups, a missing channel is a real 404."""
    try:
        channel = service.get_detail(channel_id)
    except NotFoundException as e:
        raise NotFoundException(
            e.message, code=e.code, status_code=status.HTTP_404_NOT_FOUND
        ) from e
    return {"success": True, "channel": channel}


@router.post("/{channel_id}/join")
def join_channel(
    channel_id: str,
    user_id: str = Depends(require_user_id),
    service: ChannelService = Depends(get_channel_service),
) -> Dict[str, Any]:
    service.join(channel_id, user_id)
    return {"success": True}


@router.post("/{channel_id}/leave")
def leave_channel(
    channel_id: str,
    user_id: str = Depends(require_user_id),
    service: ChannelService = Depends(get_channel_service),
) -> Dict[str, Any]:
    service.leave(channel_id, user_id)
    return {"success": True}


@router.post("/{channel_id}/members")
def add_member(
    channel_id: str,
    request: AddMemberRequest,
    user_id: str = Depends(require_user_id),
    service: ChannelService = Depends(get_channel_service),
) -> Dict[str, Any]:
    """The only way into a private channel."""
    service.add_member(channel_id, requester_id=user_id, user_id=request.user_id)
    return {"success": True}


@router.post("/{channel_id}/messages")
def send_message(
    channel_id: str,
    request: SendMessageRequest,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    message = service.send(channel_id, user_id, request.text, request.attachments)
    return {"success": True, "message": message}


@router.get("/{channel_id}/messages")
def list_messages(
    channel_id: str,
    page: int = Query(0, description="0-based page; page 0 holds the newest messages"),
    limit: Optional[int] = Query(None, description="Page size (default 50)"),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    """Read is not restricted to members, even for private channels."""
    messages = service.list_messages(channel_id, page=page, limit=limit)
    return {"success": True, "messages": messages}


@router.post("/{channel_id}/moderators")
def add_moderator(
    channel_id: str,
    request: AddModeratorRequest,
    user_id: str = Depends(require_user_id),
    service: ChannelService = Depends(get_channel_service),
) -> Dict[str, Any]:
    service.add_moderator(channel_id, requester_id=user_id, user_id=request.user_id)
    return {"success": True}


@router.delete("/{channel_id}/moderators/{moderator_id}")
def remove_moderator(
    channel_id: str,
    moderator_id: str,
    user_id: str = Depends(require_user_id),
    service: ChannelService = Depends(get_channel_service),
) -> Dict[str, Any]:
    service.remove_moderator(channel_id, requester_id=user_id, user_id=moderator_id)
    return {"success": True}
