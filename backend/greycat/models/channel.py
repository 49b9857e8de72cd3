# backend/greycat/models/channel.py
"""
Channel model for topic-based group chat.

A channel is identified by an immutable lowercase slug (``name``) and
groups members, moderators and a message timeline.

Design decisions:
- Membership and moderator sets live in their own tables keyed by
  (channel_id, user_id) so that join/leave are single atomic
  INSERT-OR-IGNORE / DELETE statements instead of read-modify-write
  on an embedded list
- Channels do not reference their messages; messages point at channels
- ``last_activity`` is bumped on every message send and drives ordering
  of the public channel list
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utcnow


class Channel(Base):
    """
    Channel model.

    Attributes:
        id: ULID primary key
        name: Unique immutable slug, charset [a-z0-9_-]
        title: Human-friendly title (defaults to the slug)
        description: Free-form description
        is_private: Private channels are only postable by members
        created_by: Creator (always a member and moderator at creation)
        last_activity: Time of the most recent message
    """

    __tablename__ = "channels"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    name = Column(String(64), unique=True, index=True, nullable=False)
    title = Column(String(120), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    is_private = Column(Boolean, nullable=False, default=False, index=True)
    created_by = Column(String(26), ForeignKey("users.id"), nullable=False)
    last_activity = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    creator = relationship("User", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return f"<Channel {self.name}>"


class ChannelMember(Base):
    """Membership row; the composite primary key makes join idempotent."""

    __tablename__ = "channel_members"

    channel_id = Column(
        String(26), ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("ix_channel_members_user", "user_id"),)


class ChannelModerator(Base):
    """Moderator row; the creator is seeded here at channel creation."""

    __tablename__ = "channel_moderators"

    channel_id = Column(
        String(26), ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    granted_at = Column(UTCDateTime, nullable=False, default=utcnow)
