# backend/greycat/api/dependencies/auth.py
"""
Authentication dependencies.

Mutating endpoints depend on ``require_user_id`` so an unresolvable
identity short-circuits with 401 before any service code runs.
"""

from fastapi import Request

from ...auth import Authenticated, resolve_user
from ...core.exceptions import UnauthorizedException


def require_user_id(request: Request) -> str:
    identity = resolve_user(request)
    if not isinstance(identity, Authenticated):
        raise UnauthorizedException("Not authenticated", code="NOT_AUTHENTICATED")
    return identity.user_id
