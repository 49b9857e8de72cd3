# backend/greycat/models/message.py
"""
Message model for channel chat.

Represents entries in a channel timeline together with their
reactions and thread replies.

Lifecycle:
    active --(soft delete)--> tombstoned   (content cleared, row kept)
    active --(hard delete)--> removed      (row gone)

Reactions, edits and replies only apply to active messages.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON as SAJSON

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utcnow


class Message(Base):
    """
    Message in a channel.

    ``user_id`` is NULL for system messages. ``text`` may be empty when
    attachments carry the content.
    """

    __tablename__ = "messages"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    channel_id = Column(
        String(26), ForeignKey("channels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(26), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    text = Column(Text, nullable=False, default="")
    # Ordered list of attachment URLs
    attachments = Column(SAJSON, nullable=False, default=list)
    pinned = Column(Boolean, nullable=False, default=False, index=True)
    edited = Column(Boolean, nullable=False, default=False)
    deleted = Column(Boolean, nullable=False, default=False, index=True)
    system = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    author = relationship("User", foreign_keys=[user_id])
    reactions = relationship(
        "MessageReaction",
        order_by="MessageReaction.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    replies = relationship(
        "MessageReply",
        order_by="MessageReply.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_messages_channel_created", "channel_id", "created_at"),)

    @property
    def is_tombstoned(self) -> bool:
        return bool(self.deleted)


class MessageReaction(Base):
    """
    Emoji reaction on a message.

    No independent identity: the (message_id, emoji, user_id) primary key is
    what makes toggling atomic at the storage layer.
    """

    __tablename__ = "message_reactions"

    message_id = Column(
        String(26), ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True
    )
    emoji = Column(String(32), primary_key=True)
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class MessageReply(Base):
    """Lightweight threaded reply to a message."""

    __tablename__ = "message_replies"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    message_id = Column(
        String(26), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    edited = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    author = relationship("User", foreign_keys=[user_id])
