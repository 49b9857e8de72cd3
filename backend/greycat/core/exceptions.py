# backend/greycat/core/exceptions.py
"""
Domain-specific exceptions for the GreyCat channel backend.

These exceptions provide clear, business-focused error messages
that are rendered into the uniform response envelope at the API layer:

    {"success": false, "message": "...", "code": "..."}

Status codes follow the long-standing client contract: expected outcomes
(validation, conflicts, missing records) are reported with HTTP 200 and
``success: false``; only authentication (401), authorization (403) and
unexpected faults (500) change the status code.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        """Body of the error response."""
        body: Dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationException(DomainException):
    """Raised when business validation fails (e.g. a malformed channel slug)."""

    status_code = status.HTTP_200_OK


class NotFoundException(DomainException):
    """Raised when a requested channel or message does not exist."""

    status_code = status.HTTP_200_OK


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data or state."""

    status_code = status.HTTP_200_OK


class UnauthorizedException(DomainException):
    """Raised when no identity could be resolved for the request."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# Specific business exceptions


class ChannelNameTakenException(ConflictException):
    """Raised when a channel slug is already in use."""

    def __init__(self, name: str):
        super().__init__(
            message="Channel name taken",
            code="CHANNEL_NAME_TAKEN",
            details={"name": name},
        )


class MessageTombstonedException(ConflictException):
    """Raised when a soft-deleted message is reacted to, edited or replied to."""

    def __init__(self, message_id: str):
        super().__init__(
            message="Message has been deleted",
            code="MESSAGE_DELETED",
            details={"message_id": message_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
