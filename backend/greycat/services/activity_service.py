# backend/greycat/services/activity_service.py
"""
Activity Tracker.

Keeps each channel's ``last_activity`` timestamp current so the public
channel list can be ordered by recency. Touching is a best-effort side
channel of message sending: a failure is logged and swallowed.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models.types import utcnow
from ..repositories.channel_repository import ChannelRepository
from .base import BaseService


class ActivityTracker(BaseService):
    """Per-channel recency bookkeeping."""

    def __init__(self, db: Session, channel_repository: Optional[ChannelRepository] = None):
        super().__init__(db)
        self.channel_repository = channel_repository or ChannelRepository(db)

    def touch(self, channel_id: str, at: Optional[datetime] = None) -> bool:
        """
        Move the channel's last activity forward to ``at`` (default: now).

        Returns:
            True if the timestamp was updated; False if it was already newer
            or the update failed
        """
        timestamp = at or utcnow()
        try:
            with self.transaction():
                updated = self.channel_repository.touch_activity(channel_id, timestamp)
            return updated
        except Exception as e:
            self.logger.warning(
                f"Failed to touch activity for channel {channel_id}: {str(e)}",
                extra={"channel_id": channel_id},
            )
            return False
