# backend/greycat/schemas/channel.py
"""
Request schemas for the channel directory.

Slug format is checked by the service so that a bad name yields the
domain's ValidationError message rather than a schema error.
"""

from typing import Optional

from pydantic import Field

from ._strict_base import StrictRequestModel


class CreateChannelRequest(StrictRequestModel):
    """Request to create a channel."""

    name: str = Field(..., description="Channel slug, [a-z0-9_-] after lowercasing")
    title: Optional[str] = Field(None, description="Display title (defaults to the slug)")
    description: Optional[str] = Field(None)
    is_private: bool = Field(False, alias="isPrivate")


class AddMemberRequest(StrictRequestModel):
    """Request to add a member (moderators only)."""

    user_id: str = Field(..., alias="userId", min_length=1)


class AddModeratorRequest(StrictRequestModel):
    """Request to grant moderator rights."""

    user_id: str = Field(..., alias="userId", min_length=1)


CreateChannelRequest.model_rebuild()
AddMemberRequest.model_rebuild()
AddModeratorRequest.model_rebuild()
