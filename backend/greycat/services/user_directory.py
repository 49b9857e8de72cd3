# backend/greycat/services/user_directory.py
"""
User Directory.

Resolves user ids to the lightweight summaries used when rendering
message authors and channel members. Lookup failures degrade to a
placeholder instead of failing the surrounding response.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

PLACEHOLDER_DISPLAY_NAME = "Unknown user"


def placeholder_summary(user_id: Optional[str]) -> Dict[str, Any]:
    return {
        "id": user_id,
        "displayName": PLACEHOLDER_DISPLAY_NAME,
        "handle": None,
        "avatarUrl": None,
    }


def summarize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "displayName": user.name or user.username,
        "handle": user.username,
        "avatarUrl": user.photo,
    }


class UserDirectory:
    """Profile lookups for author/member summaries."""

    def __init__(self, db: Session, user_repository: Optional[UserRepository] = None):
        self.db = db
        self.user_repository = user_repository or UserRepository(db)

    def get_summary(self, user_id: Optional[str]) -> Dict[str, Any]:
        """Summary for one user; never raises."""
        if not user_id:
            return placeholder_summary(None)
        return self.get_summaries([user_id])[user_id]

    def get_summaries(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Summaries for many users in one lookup.

        Every requested id is present in the result; unknown users and
        failed lookups map to the placeholder summary.
        """
        ids: List[str] = [uid for uid in dict.fromkeys(user_ids) if uid]
        try:
            users = self.user_repository.get_many(ids)
        except RepositoryException as e:
            logger.warning(f"User lookup failed, using placeholders: {str(e)}")
            users = {}

        return {
            uid: summarize_user(users[uid]) if uid in users else placeholder_summary(uid)
            for uid in ids
        }
