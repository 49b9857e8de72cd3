# backend/greycat/repositories/channel_repository.py
"""
Channel Repository for the channel directory.

Membership and moderator changes are single INSERT-OR-IGNORE / DELETE
statements against the association tables, so concurrent join/leave
requests can never lose each other's updates.
"""

from datetime import datetime
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, delete, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.channel import Channel, ChannelMember, ChannelModerator
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ChannelRepository(BaseRepository[Channel]):
    """
    Repository for channel data access.

    Handles channels and their member/moderator sets.
    """

    def __init__(self, db: Session):
        """Initialize with Channel model."""
        super().__init__(db, Channel)

    def list_public(self) -> List[Channel]:
        """Public channels, most recently active first."""
        try:
            return (
                self.db.query(Channel)
                .filter(Channel.is_private == False)  # noqa: E712
                .order_by(Channel.last_activity.desc(), Channel.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing public channels: {str(e)}")
            raise RepositoryException(f"Failed to list channels: {str(e)}")

    def get_by_name(self, name: str) -> Optional[Channel]:
        return self.find_one_by(name=name)

    def create_channel(
        self,
        name: str,
        title: str,
        description: str,
        is_private: bool,
        created_by: str,
    ) -> Optional[Channel]:
        """
        Create a channel with its creator as sole member and moderator.

        Runs inside a savepoint so a unique-name collision leaves the outer
        transaction usable.

        Returns:
            The created channel, or None if the name is already taken
        """
        try:
            with self.db.begin_nested():
                channel = Channel(
                    name=name,
                    title=title,
                    description=description,
                    is_private=is_private,
                    created_by=created_by,
                )
                self.db.add(channel)
                self.db.flush()
                self.db.add(ChannelMember(channel_id=channel.id, user_id=created_by))
                self.db.add(ChannelModerator(channel_id=channel.id, user_id=created_by))
                self.db.flush()
            self.logger.info(f"Created channel {channel.id} ({name}) by {created_by}")
            return channel
        except IntegrityError:
            self.logger.info(f"Channel name already taken: {name}")
            return None
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating channel: {str(e)}")
            raise RepositoryException(f"Failed to create channel: {str(e)}")

    # Membership

    def add_member(self, channel_id: str, user_id: str) -> bool:
        """Atomic set-add. Returns True if the user was not already a member."""
        try:
            return self._insert_ignore(ChannelMember, channel_id=channel_id, user_id=user_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding member: {str(e)}")
            raise RepositoryException(f"Failed to add member: {str(e)}")

    def remove_member(self, channel_id: str, user_id: str) -> bool:
        """Atomic set-remove. Returns True if a membership row was deleted."""
        try:
            result = self.db.execute(
                delete(ChannelMember).where(
                    and_(ChannelMember.channel_id == channel_id, ChannelMember.user_id == user_id)
                )
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error removing member: {str(e)}")
            raise RepositoryException(f"Failed to remove member: {str(e)}")

    def is_member(self, channel_id: str, user_id: str) -> bool:
        try:
            return (
                self.db.query(ChannelMember.user_id)
                .filter(ChannelMember.channel_id == channel_id, ChannelMember.user_id == user_id)
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking membership: {str(e)}")
            raise RepositoryException(f"Failed to check membership: {str(e)}")

    def get_member_ids(self, channel_id: str) -> List[str]:
        """Member ids in join order."""
        try:
            rows = (
                self.db.query(ChannelMember.user_id)
                .filter(ChannelMember.channel_id == channel_id)
                .order_by(ChannelMember.joined_at, ChannelMember.user_id)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching members: {str(e)}")
            raise RepositoryException(f"Failed to fetch members: {str(e)}")

    def get_member_counts(self, channel_ids: Sequence[str]) -> Dict[str, int]:
        if not channel_ids:
            return {}
        try:
            rows = (
                self.db.query(ChannelMember.channel_id, func.count(ChannelMember.user_id))
                .filter(ChannelMember.channel_id.in_(channel_ids))
                .group_by(ChannelMember.channel_id)
                .all()
            )
            return {channel_id: int(count) for channel_id, count in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting members: {str(e)}")
            raise RepositoryException(f"Failed to count members: {str(e)}")

    # Moderators

    def add_moderator(self, channel_id: str, user_id: str) -> bool:
        try:
            return self._insert_ignore(ChannelModerator, channel_id=channel_id, user_id=user_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding moderator: {str(e)}")
            raise RepositoryException(f"Failed to add moderator: {str(e)}")

    def remove_moderator(self, channel_id: str, user_id: str) -> bool:
        try:
            result = self.db.execute(
                delete(ChannelModerator).where(
                    and_(
                        ChannelModerator.channel_id == channel_id,
                        ChannelModerator.user_id == user_id,
                    )
                )
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error removing moderator: {str(e)}")
            raise RepositoryException(f"Failed to remove moderator: {str(e)}")

    def is_moderator(self, channel_id: str, user_id: str) -> bool:
        try:
            return (
                self.db.query(ChannelModerator.user_id)
                .filter(
                    ChannelModerator.channel_id == channel_id,
                    ChannelModerator.user_id == user_id,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking moderator: {str(e)}")
            raise RepositoryException(f"Failed to check moderator: {str(e)}")

    def get_moderator_ids(self, channel_id: str) -> List[str]:
        try:
            rows = (
                self.db.query(ChannelModerator.user_id)
                .filter(ChannelModerator.channel_id == channel_id)
                .order_by(ChannelModerator.granted_at, ChannelModerator.user_id)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching moderators: {str(e)}")
            raise RepositoryException(f"Failed to fetch moderators: {str(e)}")

    # Activity

    def touch_activity(self, channel_id: str, at: datetime) -> bool:
        """
        Move last_activity forward to ``at``.

        Never moves it backwards, so a slow send cannot overwrite the
        timestamp of a newer one.
        """
        try:
            result = self.db.execute(
                update(Channel)
                .where(
                    and_(
                        Channel.id == channel_id,
                        or_(Channel.last_activity.is_(None), Channel.last_activity < at),
                    )
                )
                .values(last_activity=at)
                .execution_options(synchronize_session="fetch")
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error touching channel activity: {str(e)}")
            raise RepositoryException(f"Failed to touch channel activity: {str(e)}")
