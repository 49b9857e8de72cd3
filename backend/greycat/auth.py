"""
Identity resolution for GreyCat.

Accounts, passwords and OAuth providers live in the account service.
By the time a request reaches the channel backend, either login flow
has produced the same thing: a signed JWT whose ``sub`` is the user id.
It arrives as a bearer token (OAuth-style clients) or in the session
cookie (password login). Both shapes resolve to one tagged result.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, Union, cast

import jwt
from jwt import PyJWTError
from starlette.requests import HTTPConnection

from .core.config import settings

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class Authenticated:
    user_id: str

    @property
    def is_authenticated(self) -> bool:
        return True


@dataclass(frozen=True)
class Unauthenticated:
    @property
    def is_authenticated(self) -> bool:
        return False


Identity = Union[Authenticated, Unauthenticated]


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for ``user_id``.

    Args:
        user_id: The user's ULID, stored as ``sub``
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {"sub": user_id, "iat": now, "exp": expire}
    return cast(
        str,
        jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.jwt_algorithm),
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a token. Raises PyJWTError when invalid or expired."""
    payload = jwt.decode(
        token,
        _secret_value(settings.secret_key),
        algorithms=[settings.jwt_algorithm],
    )
    return cast(Dict[str, Any], payload)


def _extract_token(connection: HTTPConnection) -> Optional[str]:
    header = connection.headers.get("authorization", "")
    if header.lower().startswith(BEARER_PREFIX):
        token = header[len(BEARER_PREFIX) :].strip()
        if token:
            return token

    cookie = connection.cookies.get(settings.session_cookie_name)
    if cookie:
        return cookie

    # Browsers cannot set headers on WebSocket handshakes
    if connection.scope.get("type") == "websocket":
        return connection.query_params.get("token") or None
    return None


def resolve_user(connection: HTTPConnection) -> Identity:
    """
    Resolve the caller of a request or WebSocket handshake.

    Never raises: a missing, malformed or expired token is Unauthenticated.
    """
    token = _extract_token(connection)
    if not token:
        return Unauthenticated()

    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.debug(f"Rejected token: {str(e)}")
        return Unauthenticated()

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return Unauthenticated()
    return Authenticated(user_id=subject)
