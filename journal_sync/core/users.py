"""
PR Journal Sync - User Lookups
===============================

Emails are normalized to lower case before every read and write, which
together with the unique index makes an email identify at most one user.
"""

from typing import Optional
from uuid import UUID

from passlib.hash import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.errors import Conflict
from journal_sync.core.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.verify(password, password_hash)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: UUID) -> Optional[User]:
    return await db.get(User, user_id)


async def create_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Create an unverified user. Flushes, does not commit.

    Raises:
        Conflict: If the email is already registered
    """
    if await get_user_by_email(db, email) is not None:
        raise Conflict("Email already exists")

    user = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        is_verified=False,
        last_login=None,
    )
    db.add(user)
    await db.flush()
    return user
