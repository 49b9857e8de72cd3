# backend/greycat/schemas/message.py
"""
Request schemas for channel messages.
"""

from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictRequestModel


class SendMessageRequest(StrictRequestModel):
    """Request to post a message to a channel."""

    text: Optional[str] = Field("", description="Message body; may be empty")
    attachments: List[str] = Field(default_factory=list, description="Attachment URLs")


class ToggleReactionRequest(StrictRequestModel):
    """Request to toggle a reaction. A missing emoji is reported by the service."""

    emoji: Optional[str] = Field(None)


class EditMessageRequest(StrictRequestModel):
    text: str = Field(..., description="Replacement text")


class ReplyRequest(StrictRequestModel):
    text: str = Field(..., description="Reply text")


SendMessageRequest.model_rebuild()
ToggleReactionRequest.model_rebuild()
EditMessageRequest.model_rebuild()
ReplyRequest.model_rebuild()
