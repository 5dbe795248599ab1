"""
PR Journal Sync - Error Taxonomy
=================================

Every fallible boundary raises an AppError subclass. The ErrorKind on each
error is what callers and the HTTP layer match on; the message is safe to
show to API clients.
"""

import enum
from typing import Optional

from fastapi import status


class ErrorKind(str, enum.Enum):
    """Discriminator shared by all application errors."""
    UNAUTHORIZED = "UNAUTHORIZED"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppError(Exception):
    """Base class for errors that carry an HTTP-facing classification."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ==========================================================================
# Top-level kinds
# ==========================================================================

class Unauthorized(AppError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class BadRequest(AppError):
    kind = ErrorKind.BAD_REQUEST
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppError):
    kind = ErrorKind.CONFLICT
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ServiceUnavailable(AppError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Upstream service unavailable"


class UpstreamError(AppError):
    """An upstream service answered with its own error status."""

    kind = ErrorKind.UPSTREAM_ERROR
    default_message = "Upstream service error"

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message)


class InternalError(AppError):
    kind = ErrorKind.INTERNAL_ERROR


# ==========================================================================
# Credential relay
# ==========================================================================

class MalformedCiphertext(BadRequest):
    """Encrypted blob has no IV separator."""
    default_message = "Encrypted value is malformed"


class DecryptionFailure(BadRequest):
    """The cipher rejected the blob (bad padding, wrong key, corrupted data)."""
    default_message = "Failed to decrypt credentials"


class CipherConfigurationError(InternalError):
    """No encryption secret is configured; credential flows cannot run."""
    default_message = "Credential encryption is not configured"


# ==========================================================================
# Tokens
# ==========================================================================

class InvalidOrExpiredToken(Unauthorized):
    default_message = "Invalid or expired token"


class InvalidRefreshToken(Unauthorized):
    """No active record matches the presented refresh token."""
    default_message = "Invalid refresh token"


class RefreshTokenExpired(Unauthorized):
    default_message = "Refresh token expired"
