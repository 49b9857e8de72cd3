# backend/greycat/repositories/user_repository.py
"""
User Repository.

Read-only access to the profile fields used for summaries.
"""

from typing import Dict, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user profile lookups."""

    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Fetch users by id in one query, keyed by id."""
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        try:
            users = self.db.query(User).filter(User.id.in_(ids)).all()
            return {user.id: user for user in users}
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching users: {str(e)}")
            raise RepositoryException(f"Failed to fetch users: {str(e)}")
