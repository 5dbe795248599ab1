"""
PR Journal Sync - Refresh Token Store
======================================

Per-user ledger of issued refresh tokens with revoke/replace semantics.

Every rotation revokes exactly one active record and links it to its
successor, forming a chain per login lineage:

    login ──> rt1 ──replaced_by──> rt2 ──replaced_by──> rt3 (active)

Presenting a revoked token always fails closed.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.errors import InvalidRefreshToken, RefreshTokenExpired
from journal_sync.core.models import RefreshToken, User
from journal_sync.core.tokens import TokenIssuer

logger = structlog.get_logger()


def hash_token(token: str) -> str:
    """Create a hash of a token for storage."""
    return hashlib.sha256(token.encode()).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class Rotation:
    """Result of a successful refresh-token rotation."""
    user: User
    access_token: str
    refresh_token: str


class RefreshTokenStore:
    """Persists refresh-token records and rotates them."""

    def __init__(self, db: AsyncSession, issuer: TokenIssuer, expire_days: int = 7):
        self.db = db
        self.issuer = issuer
        self.expire_days = expire_days

    async def save(self, user_id: UUID, token: str, ip: str) -> RefreshToken:
        """Append a new active record for the user. Flushes, does not commit."""
        now = datetime.now(timezone.utc)
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(token),
            created_at=now,
            expires_at=now + timedelta(days=self.expire_days),
            created_by_ip=ip,
            is_active=True,
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def rotate(self, user_id: UUID, old_token: str, ip: str) -> Rotation:
        """
        Exchange an active refresh token for a new refresh + access pair.

        The old record is revoked with a single conditional UPDATE matching
        both its id and is_active, so of two concurrent rotations of the same
        token only one can succeed.

        Raises:
            InvalidRefreshToken: No active record matches (reuse or forgery)
            RefreshTokenExpired: The record exists but is past its expiry
        """
        old_hash = hash_token(old_token)
        result = await self.db.execute(
            select(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token_hash == old_hash,
                RefreshToken.is_active == True,  # noqa: E712
            )
        )
        record = result.scalar_one_or_none()

        if record is None:
            logger.warning(
                "refresh_token_reuse_or_forgery",
                user_id=str(user_id),
                ip=ip,
            )
            raise InvalidRefreshToken()

        if _as_utc(record.expires_at) < datetime.now(timezone.utc):
            logger.info("refresh_token_expired", user_id=str(user_id))
            raise RefreshTokenExpired()

        user = await self.db.get(User, user_id)
        if user is None:
            raise InvalidRefreshToken()

        new_refresh = self.issuer.issue_refresh_token(user.id)
        new_access = self.issuer.issue_access_token(user.id, user.email)

        revoked = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == record.id,
                RefreshToken.is_active == True,  # noqa: E712
            )
            .values(
                is_active=False,
                revoked_at=datetime.now(timezone.utc),
                revoked_by_ip=ip,
                replaced_by_token_hash=hash_token(new_refresh),
            )
        )
        if revoked.rowcount != 1:
            await self.db.rollback()
            logger.warning("refresh_token_rotation_race_lost", user_id=str(user_id), ip=ip)
            raise InvalidRefreshToken()

        await self.save(user.id, new_refresh, ip)
        await self.db.commit()

        logger.info("refresh_token_rotated", user_id=str(user_id))
        return Rotation(user=user, access_token=new_access, refresh_token=new_refresh)

    async def revoke_all(self, user_id: UUID, ip: str) -> int:
        """Revoke every active token of the user. Returns how many were revoked."""
        result = await self.db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_active == True,  # noqa: E712
            )
            .values(
                is_active=False,
                revoked_at=datetime.now(timezone.utc),
                revoked_by_ip=ip,
            )
        )
        await self.db.commit()
        return result.rowcount

    async def lineage(self, user_id: UUID, token: str) -> list[RefreshToken]:
        """
        Walk the replacement chain starting at ``token``.

        Returns the records in order, the starting record first and the
        latest successor last.
        """
        chain: list[RefreshToken] = []
        next_hash: Optional[str] = hash_token(token)
        seen: set[str] = set()

        while next_hash and next_hash not in seen:
            seen.add(next_hash)
            result = await self.db.execute(
                select(RefreshToken)
                .where(
                    RefreshToken.user_id == user_id,
                    RefreshToken.token_hash == next_hash,
                )
                .execution_options(populate_existing=True)
            )
            record = result.scalar_one_or_none()
            if record is None:
                break
            chain.append(record)
            next_hash = record.replaced_by_token_hash

        return chain
