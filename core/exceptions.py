"""
Custom Exception Classes for the Channel & Session API.

This module defines the error taxonomy shared by the credential lifecycle and
the relationship graph queries. Every exception carries a message, a stable
error code, optional details, and the HTTP status it maps to.

Key Components:
- `ChannelAPIException`: Base class for every application error.
- Credential errors (`UnauthorizedError`, `InvalidCredentialError`,
  `StaleOrReusedError`): raised while authenticating a request or rotating a
  refresh credential. They carry an internal reason for logging only.
- `to_http_exception`: Translates application errors into FastAPI
  `HTTPException` objects. Credential errors all collapse into one generic
  unauthorized body so a client cannot tell an expired token from a forged or
  reused one. Internal failures are reported without detail.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class ChannelAPIException(Exception):
    """Base exception class for the Channel & Session API"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "CHANNEL_API_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ChannelAPIException):
    """Raised when input validation fails"""

    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(
            reason,
            "VALIDATION_ERROR",
            {"field": field},
        )


class ConflictError(ChannelAPIException):
    """Raised when a username or email is already taken"""

    status_code = 409

    def __init__(self, message: str = "User with email or username already exists"):
        super().__init__(message, "CONFLICT")


class NotFoundError(ChannelAPIException):
    """Raised when an account or channel does not exist"""

    status_code = 404

    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND")


class InvalidCredentialsError(ChannelAPIException):
    """Raised when a login password does not match"""

    status_code = 401

    def __init__(self):
        super().__init__("Invalid user credentials", "INVALID_CREDENTIALS")


class InvalidOldPasswordError(ChannelAPIException):
    """Raised when the current password is wrong during a password change"""

    status_code = 400

    def __init__(self):
        super().__init__("Invalid old password", "INVALID_OLD_PASSWORD")


class UnauthorizedError(ChannelAPIException):
    """Raised when a request carries no usable access credential"""

    status_code = 401

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Unauthorized: {reason}", "UNAUTHORIZED")


class InvalidCredentialError(UnauthorizedError):
    """Raised when a token fails signature, format, class or expiry checks"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.error_code = "INVALID_CREDENTIAL"


class StaleOrReusedError(UnauthorizedError):
    """Raised when a refresh token is not the one currently on record"""

    def __init__(self):
        super().__init__("refresh token is expired or used")
        self.error_code = "STALE_OR_REUSED"


class InternalError(ChannelAPIException):
    """Raised when signing or storage fails"""

    status_code = 500

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Operation '{operation}' failed: {reason}",
            "INTERNAL_ERROR",
            {"operation": operation},
        )


class ConfigurationError(ChannelAPIException):
    """Raised when startup configuration is missing or invalid"""

    status_code = 500

    def __init__(self, setting: str, reason: str):
        super().__init__(
            f"Invalid configuration for {setting}: {reason}",
            "CONFIGURATION_ERROR",
            {"setting": setting},
        )


def to_http_exception(exc: ChannelAPIException) -> HTTPException:
    """Convert ChannelAPIException to FastAPI HTTPException"""

    if isinstance(exc, UnauthorizedError):
        return HTTPException(
            status_code=401,
            detail={
                "error_code": "UNAUTHORIZED",
                "message": "Unauthorized request",
                "details": {},
            },
        )

    if exc.status_code >= 500:
        return HTTPException(
            status_code=exc.status_code,
            detail={
                "error_code": "INTERNAL_ERROR",
                "message": "Something went wrong while processing the request",
                "details": {},
            },
        )

    return HTTPException(
        status_code=exc.status_code,
        detail={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )
