# backend/greycat/services/channel_service.py
"""
Channel Directory service.

Handles channel lifecycle: creation, public listing, detail lookup,
membership (join/leave) and moderator roles.

Membership changes are atomic set-add/set-remove statements in the
repository; this service only decides whether they are allowed.
"""

from datetime import datetime
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ChannelNameTakenException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..models.channel import Channel
from ..repositories.channel_repository import ChannelRepository
from .base import BaseService
from .user_directory import UserDirectory

logger = logging.getLogger(__name__)

CHANNEL_NAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")
CHANNEL_NAME_MAX_LENGTH = 64


def normalize_channel_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ChannelService(BaseService):
    """
    Service layer for the channel directory.

    Collaborators are injected so routes and tests can share one session.
    """

    def __init__(
        self,
        db: Session,
        users: Optional[UserDirectory] = None,
        channel_repository: Optional[ChannelRepository] = None,
    ):
        super().__init__(db)
        self.channel_repository = channel_repository or ChannelRepository(db)
        self.users = users or UserDirectory(db)

    # Reads

    @BaseService.measure_operation("list_public_channels")
    def list_public(self) -> List[Dict[str, Any]]:
        """Public channels, most recently active first."""
        channels = self.channel_repository.list_public()
        counts = self.channel_repository.get_member_counts([c.id for c in channels])
        return [self._serialize(channel, member_count=counts.get(channel.id, 0)) for channel in channels]

    @BaseService.measure_operation("get_channel_detail")
    def get_detail(self, channel_id: str) -> Dict[str, Any]:
        """
        Channel with members and moderators resolved to user summaries.

        Raises:
            NotFoundException: If the channel does not exist
        """
        channel = self.get_channel_or_raise(channel_id)
        member_ids = self.channel_repository.get_member_ids(channel.id)
        moderator_ids = self.channel_repository.get_moderator_ids(channel.id)
        summaries = self.users.get_summaries([*member_ids, *moderator_ids, channel.created_by])

        detail = self._serialize(channel, member_count=len(member_ids))
        detail["members"] = [summaries[uid] for uid in member_ids]
        detail["moderators"] = [summaries[uid] for uid in moderator_ids]
        detail["createdBy"] = summaries[channel.created_by]
        return detail

    def get_channel_or_raise(self, channel_id: str) -> Channel:
        channel = self.channel_repository.get_by_id(channel_id, load_relationships=False)
        if not channel:
            raise NotFoundException("Channel not found", code="CHANNEL_NOT_FOUND")
        return channel

    def is_member(self, channel_id: str, user_id: str) -> bool:
        return self.channel_repository.is_member(channel_id, user_id)

    def is_moderator(self, channel_id: str, user_id: str) -> bool:
        # The creator is seeded as moderator, so this is plain set membership
        return self.channel_repository.is_moderator(channel_id, user_id)

    # Mutations

    @BaseService.measure_operation("create_channel")
    def create(
        self,
        name: str,
        creator_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        is_private: bool = False,
    ) -> Dict[str, Any]:
        """
        Create a channel owned by ``creator_id``.

        The slug is trimmed and lowercased before validation; the title
        defaults to the slug.

        Raises:
            ValidationException: If the slug is empty or uses other characters
            ConflictException: If the slug is already taken
        """
        slug = normalize_channel_name(name)
        if not slug or not CHANNEL_NAME_PATTERN.match(slug):
            raise ValidationException(
                "Channel name may only contain lowercase letters, digits, '-' and '_'",
                code="INVALID_CHANNEL_NAME",
                details={"name": name},
            )
        if len(slug) > CHANNEL_NAME_MAX_LENGTH:
            raise ValidationException(
                f"Channel name must be at most {CHANNEL_NAME_MAX_LENGTH} characters",
                code="INVALID_CHANNEL_NAME",
                details={"name": name},
            )

        display_title = (title or "").strip() or slug
        if len(display_title) > settings.channel_title_max_length:
            raise ValidationException("Channel title is too long", code="INVALID_CHANNEL_TITLE")
        text = (description or "").strip()
        if len(text) > settings.channel_description_max_length:
            raise ValidationException(
                "Channel description is too long", code="INVALID_CHANNEL_DESCRIPTION"
            )

        with self.transaction():
            channel = self.channel_repository.create_channel(
                name=slug,
                title=display_title,
                description=text,
                is_private=bool(is_private),
                created_by=creator_id,
            )
            if channel is None:
                raise ChannelNameTakenException(slug)

        self.log_operation("create_channel", channel_id=channel.id, creator_id=creator_id)
        return self._serialize(channel, member_count=1)

    @BaseService.measure_operation("join_channel")
    def join(self, channel_id: str, user_id: str) -> bool:
        """
        Add a member. Joining twice is a no-op.

        Private channels cannot be self-joined; a moderator adds members
        with ``add_member``.

        Returns:
            True if the user was newly added

        Raises:
            NotFoundException: If the channel does not exist
            ForbiddenException: If the channel is private and the user is
                not already a member
        """
        channel = self.get_channel_or_raise(channel_id)
        if channel.is_private:
            if self.is_member(channel.id, user_id):
                return False
            raise ForbiddenException(
                "Private channel: ask a moderator to add you", code="NOT_INVITED"
            )
        with self.transaction():
            added = self.channel_repository.add_member(channel_id, user_id)
        if added:
            self.log_operation("join_channel", channel_id=channel_id, user_id=user_id)
        return added

    @BaseService.measure_operation("add_member")
    def add_member(self, channel_id: str, requester_id: str, user_id: str) -> bool:
        """Add another user as a member. Moderators only; works for private channels."""
        self.get_channel_or_raise(channel_id)
        self._require_moderator(channel_id, requester_id)
        with self.transaction():
            added = self.channel_repository.add_member(channel_id, user_id)
        if added:
            self.log_operation(
                "add_member", channel_id=channel_id, user_id=user_id, added_by=requester_id
            )
        return added

    @BaseService.measure_operation("leave_channel")
    def leave(self, channel_id: str, user_id: str) -> bool:
        """Remove a member. Leaving a channel you are not in is a no-op."""
        with self.transaction():
            removed = self.channel_repository.remove_member(channel_id, user_id)
        if removed:
            self.log_operation("leave_channel", channel_id=channel_id, user_id=user_id)
        return removed

    @BaseService.measure_operation("add_moderator")
    def add_moderator(self, channel_id: str, requester_id: str, user_id: str) -> bool:
        """
        Grant moderator rights. Only moderators may grant them.

        The new moderator is also made a member.
        """
        self.get_channel_or_raise(channel_id)
        self._require_moderator(channel_id, requester_id)
        with self.transaction():
            self.channel_repository.add_member(channel_id, user_id)
            added = self.channel_repository.add_moderator(channel_id, user_id)
        self.log_operation(
            "add_moderator", channel_id=channel_id, user_id=user_id, granted_by=requester_id
        )
        return added

    @BaseService.measure_operation("remove_moderator")
    def remove_moderator(self, channel_id: str, requester_id: str, user_id: str) -> bool:
        """
        Revoke moderator rights. The channel creator always stays a moderator.
        """
        channel = self.get_channel_or_raise(channel_id)
        self._require_moderator(channel_id, requester_id)
        if user_id == channel.created_by:
            raise ForbiddenException(
                "The channel creator cannot be removed as moderator", code="CREATOR_IS_MODERATOR"
            )
        with self.transaction():
            removed = self.channel_repository.remove_moderator(channel_id, user_id)
        self.log_operation(
            "remove_moderator", channel_id=channel_id, user_id=user_id, revoked_by=requester_id
        )
        return removed

    # Helpers

    def _require_moderator(self, channel_id: str, user_id: str) -> None:
        if not self.is_moderator(channel_id, user_id):
            raise ForbiddenException("Only moderators can manage channel roles", code="NOT_MODERATOR")

    def _serialize(self, channel: Channel, member_count: int) -> Dict[str, Any]:
        return {
            "id": channel.id,
            "name": channel.name,
            "title": channel.title,
            "description": channel.description,
            "isPrivate": bool(channel.is_private),
            "memberCount": member_count,
            "lastActivity": _isoformat(channel.last_activity),
            "createdAt": _isoformat(channel.created_at),
        }
