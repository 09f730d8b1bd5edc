"""
Custom exception hierarchy for the application.
"""

from typing import Any

from fastapi import HTTPException, status


class StoreAdminException(Exception):
    """Base exception for all application exceptions."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(StoreAdminException):
    """Raised when the caller identity is missing entirely."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(StoreAdminException):
    """Raised when a referenced role, permission or assignment doesn't exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ProtectedEntityError(StoreAdminException):
    """Raised on an attempt to mutate a system role or permission."""
    pass


class ValidationError(StoreAdminException):
    """Raised when required input is missing or malformed."""
    pass


class DuplicateEntityError(ValidationError):
    """Raised when a role name or (action, resource) pair already exists."""

    status_code = status.HTTP_409_CONFLICT


class AccessDeniedError(StoreAdminException):
    """
    Raised when route enforcement denies a request.

    Rendered as {message, reason, action, resource} rather than {detail}.
    """

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, reason: str, action: str, resource: str):
        super().__init__("Access denied", {"reason": reason, "action": action, "resource": resource})


# HTTP Exception helpers
def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    """Return 401 Unauthorized exception."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def service_unavailable(detail: str = "Service temporarily unavailable") -> HTTPException:
    """Return 503 Service Unavailable exception."""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    )
