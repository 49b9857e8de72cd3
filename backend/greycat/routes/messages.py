# backend/greycat/routes/messages.py
"""
Message routes.

Endpoints addressed by message id:
    GET    /messages/{message_id}             - Single message (tombstones included)
    DELETE /messages/{message_id}             - Hard delete (author or moderator)
    PATCH  /messages/{message_id}             - Edit text (author)
    POST   /messages/{message_id}/reactions   - Toggle reaction {emoji}
    POST   /messages/{message_id}/soft-delete - Tombstone (author or moderator)
    POST   /messages/{message_id}/pin         - Toggle pin (moderator)
    POST   /messages/{message_id}/replies     - Add a thread reply
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..api.dependencies.auth import require_user_id
from ..api.dependencies.services import get_message_service
from ..schemas.message import EditMessageRequest, ReplyRequest, ToggleReactionRequest
from ..services.message_service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/{message_id}")
def get_message(
    message_id: str, service: MessageService = Depends(get_message_service)
) -> Dict[str, Any]:
    return {"success": True, "message": service.get_message(message_id)}


@router.delete("/{message_id}")
def delete_message(
    message_id: str,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    msg_id = service.delete(message_id, user_id)
    return {"success": True, "msgId": msg_id}


@router.patch("/{message_id}")
def edit_message(
    message_id: str,
    request: EditMessageRequest,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    return {"success": True, "message": service.edit(message_id, user_id, request.text)}


@router.post("/{message_id}/reactions")
def toggle_reaction(
    message_id: str,
    request: ToggleReactionRequest,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    """Toggle: a second identical request removes the reaction again."""
    message = service.toggle_reaction(message_id, user_id, request.emoji)
    return {"success": True, "message": message}


@router.post("/{message_id}/soft-delete")
def soft_delete_message(
    message_id: str,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    return {"success": True, "message": service.soft_delete(message_id, requester_id=user_id)}


@router.post("/{message_id}/pin")
def toggle_pin(
    message_id: str,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    return {"success": True, "message": service.toggle_pin(message_id, user_id)}


@router.post("/{message_id}/replies")
def add_reply(
    message_id: str,
    request: ReplyRequest,
    user_id: str = Depends(require_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, Any]:
    return {"success": True, "message": service.add_reply(message_id, user_id, request.text)}
