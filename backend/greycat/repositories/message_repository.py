# backend/greycat/repositories/message_repository.py
"""
Message Repository for channel chat.

Implements all data access operations for messages, reactions and
thread replies.

Every mutation that races with other requests is expressed as a single
conditional statement (conditional UPDATE, INSERT-OR-IGNORE, DELETE by
composite key) rather than read-modify-write on a loaded object.
"""

from datetime import datetime
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy import and_, delete, not_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.message import Message, MessageReaction, MessageReply
from ..models.types import utcnow
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

REACTION_ADDED = "added"
REACTION_REMOVED = "removed"


class MessageRepository(BaseRepository[Message]):
    """
    Repository for message data access.

    Handles messages, their reactions and replies.
    """

    def __init__(self, db: Session):
        """Initialize with Message model."""
        super().__init__(db, Message)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Message.author),
            selectinload(Message.reactions),
            selectinload(Message.replies).joinedload(MessageReply.author),
        )

    def get_fresh(self, message_id: str) -> Optional[Message]:
        """
        Load a message with author, reactions and replies, overwriting any
        stale state already held by the session.
        """
        try:
            query = self._apply_eager_loading(
                self.db.query(Message).filter(Message.id == message_id)
            )
            return cast(Optional[Message], query.populate_existing().first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading message {message_id}: {str(e)}")
            raise RepositoryException(f"Failed to load message: {str(e)}")

    def create_message(
        self,
        channel_id: str,
        user_id: Optional[str],
        text: str,
        attachments: Optional[Sequence[str]] = None,
        system: bool = False,
        created_at: Optional[datetime] = None,
    ) -> Message:
        """
        Create a new message in a channel.

        For system messages, user_id should be None.

        Raises:
            RepositoryException: If creation fails
        """
        try:
            now = created_at or utcnow()
            message = Message(
                channel_id=channel_id,
                user_id=user_id,
                text=text,
                attachments=list(attachments or []),
                system=system,
                created_at=now,
                updated_at=now,
            )
            self.db.add(message)
            self.db.flush()
            self.logger.info(f"Created message {message.id} in channel {channel_id}")
            return message
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating message: {str(e)}")
            raise RepositoryException(f"Failed to create message: {str(e)}")

    def find_by_channel(self, channel_id: str, skip: int = 0, limit: int = 50) -> List[Message]:
        """
        Page through a channel's messages.

        Messages are returned newest first; ``id`` breaks ties between
        messages created in the same instant so pages never overlap.
        """
        try:
            query = self._apply_eager_loading(
                self.db.query(Message).filter(Message.channel_id == channel_id)
            )
            query = query.order_by(Message.created_at.desc(), Message.id.desc())
            return cast(List[Message], query.offset(skip).limit(limit).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching messages for channel: {str(e)}")
            raise RepositoryException(f"Failed to fetch messages for channel: {str(e)}")

    # Reactions

    def toggle_reaction(self, message_id: str, user_id: str, emoji: str) -> str:
        """
        Toggle the (emoji, user) reaction on a message.

        Removal is a DELETE on the composite key; only when nothing was
        removed is the pair inserted, with conflicts ignored. Two racing
        toggles therefore never leave a duplicate pair behind.

        Returns:
            "added" or "removed"
        """
        try:
            removed = self.db.execute(
                delete(MessageReaction).where(
                    and_(
                        MessageReaction.message_id == message_id,
                        MessageReaction.user_id == user_id,
                        MessageReaction.emoji == emoji,
                    )
                )
            )
            if removed.rowcount:
                self.logger.info(f"Removed reaction {emoji} by {user_id} on message {message_id}")
                return REACTION_REMOVED

            self._insert_ignore(
                MessageReaction,
                message_id=message_id,
                user_id=user_id,
                emoji=emoji,
                created_at=utcnow(),
            )
            self.logger.info(f"Added reaction {emoji} by {user_id} on message {message_id}")
            return REACTION_ADDED
        except SQLAlchemyError as e:
            self.logger.error(f"Error toggling reaction: {str(e)}")
            raise RepositoryException(f"Failed to toggle reaction: {str(e)}")

    # Lifecycle

    def soft_delete_message(self, message_id: str) -> bool:
        """
        Tombstone a message: clear text, attachments and reactions.

        Identity, channel and timestamps are preserved.

        Returns:
            True if the message was active and is now tombstoned
        """
        try:
            result = self.db.execute(
                update(Message)
                .where(and_(Message.id == message_id, Message.deleted == False))  # noqa: E712
                .values(text="", attachments=[], deleted=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                return False
            self.db.execute(delete(MessageReaction).where(MessageReaction.message_id == message_id))
            self.logger.info(f"Soft deleted message {message_id}")
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Error soft deleting message: {str(e)}")
            raise RepositoryException(f"Failed to soft delete message: {str(e)}")

    def apply_message_edit(self, message_id: str, new_text: str) -> bool:
        """Replace the text of an active message and mark it edited."""
        try:
            result = self.db.execute(
                update(Message)
                .where(and_(Message.id == message_id, Message.deleted == False))  # noqa: E712
                .values(text=new_text, edited=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error applying message edit: {str(e)}")
            raise RepositoryException(f"Failed to apply message edit: {str(e)}")

    def toggle_pinned(self, message_id: str) -> bool:
        """Flip the pinned flag of an active message in one statement."""
        try:
            result = self.db.execute(
                update(Message)
                .where(and_(Message.id == message_id, Message.deleted == False))  # noqa: E712
                .values(pinned=not_(Message.pinned), updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error toggling pin: {str(e)}")
            raise RepositoryException(f"Failed to toggle pin: {str(e)}")

    # Replies

    def add_reply(self, message_id: str, user_id: str, text: str) -> MessageReply:
        try:
            reply = MessageReply(message_id=message_id, user_id=user_id, text=text)
            self.db.add(reply)
            self.db.flush()
            self.logger.info(f"Added reply {reply.id} to message {message_id}")
            return reply
        except SQLAlchemyError as e:
            self.logger.error(f"Error adding reply: {str(e)}")
            raise RepositoryException(f"Failed to add reply: {str(e)}")
