# backend/greycat/models/user.py
"""
User model.

Accounts, passwords and OAuth linkage are owned by the account service;
the channel backend only reads the profile fields needed to render
author and member summaries.
"""

from sqlalchemy import Boolean, Column, String

from ..core.ulid_helper import generate_ulid
from ..database import Base
from .types import UTCDateTime, utcnow


class User(Base):
    """
    Profile projection of a GreyCat account.

    Attributes:
        id: ULID primary key
        username: Unique handle shown as @username
        name: Display name
        photo: Avatar URL
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    username = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False, default="")
    photo = Column(String(500), nullable=True)
    email = Column(String(255), unique=True, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
