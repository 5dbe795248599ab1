"""
PR Journal Sync - Token Issuer
===============================

Signs and verifies access and refresh JWTs. Access and refresh tokens use
distinct secrets; both carry a random jti so two tokens issued within the
same second never collide.
"""

import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional
from uuid import UUID

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from journal_sync.core.config import settings
from journal_sync.core.errors import InvalidOrExpiredToken

logger = structlog.get_logger()

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenIssuer:
    """Creates and verifies signed access tokens and rotating refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_expires: timedelta = timedelta(minutes=15),
        refresh_expires: timedelta = timedelta(days=7),
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_expires = access_expires
        self.refresh_expires = refresh_expires

    def _encode(
        self,
        claims: dict[str, Any],
        secret: str,
        expires_delta: timedelta,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iat": now,
            "exp": now + expires_delta,
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def issue_access_token(
        self,
        user_id: UUID,
        email: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a short-lived access token.

        Args:
            user_id: User's UUID (becomes the ``sub`` claim)
            email: User's email
            expires_delta: Optional custom expiration time

        Returns:
            Encoded JWT token
        """
        return self._encode(
            {"sub": str(user_id), "email": email, "type": ACCESS_TOKEN_TYPE},
            self.access_secret,
            expires_delta or self.access_expires,
        )

    def issue_refresh_token(
        self,
        user_id: UUID,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Create a long-lived refresh token carrying only the subject."""
        return self._encode(
            {"sub": str(user_id), "type": REFRESH_TOKEN_TYPE},
            self.refresh_secret,
            expires_delta or self.refresh_expires,
        )

    def verify(self, token: str, secret: str) -> dict[str, Any]:
        """
        Decode and validate a JWT token.

        Raises:
            InvalidOrExpiredToken: On any signature mismatch or expiry breach.
                Expired and tampered tokens are logged differently but raise
                the same error.
        """
        try:
            return jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            logger.info("token_expired")
            raise InvalidOrExpiredToken() from e
        except JWTError as e:
            logger.warning("token_rejected", reason=str(e))
            raise InvalidOrExpiredToken() from e

    def _verify_typed(self, token: str, secret: str, token_type: str) -> dict[str, Any]:
        claims = self.verify(token, secret)
        if claims.get("type") != token_type or not claims.get("sub"):
            logger.warning("token_wrong_type", expected=token_type, got=claims.get("type"))
            raise InvalidOrExpiredToken()
        return claims

    def verify_access(self, token: str) -> dict[str, Any]:
        return self._verify_typed(token, self.access_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh(self, token: str) -> dict[str, Any]:
        return self._verify_typed(token, self.refresh_secret, REFRESH_TOKEN_TYPE)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    """Get the token issuer configured from settings."""
    return TokenIssuer(
        access_secret=settings.JWT_SECRET,
        refresh_secret=settings.refresh_secret,
        algorithm=settings.ALGORITHM,
        access_expires=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_expires=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )
