"""
PR Journal Sync - Database Models
==================================

SQLAlchemy models for users, their refresh-token ledger, the PR → journal
mapping and pull-request summaries waiting to be journaled.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from journal_sync.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# ==========================================================================
# Models
# ==========================================================================

class User(Base, TimestampMixin):
    """
    User account model.

    Identity anchor for the refresh-token ledger and the PR → journal map.
    Email is stored lower-cased and is globally unique.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        back_populates="user",
        lazy="selectin",
        order_by="RefreshToken.created_at",
    )
    pr_journal_entries: Mapped[list["PrJournalEntry"]] = relationship(
        back_populates="user",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class RefreshToken(Base):
    """
    One issued refresh token.

    Tokens are stored as SHA-256 digests. Rotation revokes the record and
    links it to its successor through replaced_by_token_hash, so the whole
    lineage can be walked for auditing. Records are never deleted.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    created_by_ip: Mapped[str] = mapped_column(
        String(64),
        default="unknown",
        nullable=False,
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_by_ip: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )
    replaced_by_token_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(back_populates="refresh_tokens")

    def __repr__(self) -> str:
        return f"<RefreshToken {self.id} active={self.is_active}>"


class PrJournalEntry(Base, TimestampMixin):
    """
    Hashed PR reference → journal entry id, per user.

    Presence of a row means the PR is already journaled for that user.
    """

    __tablename__ = "pr_journal_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "pr_ref_hash", name="uq_pr_journal_user_ref"),
    )

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pr_ref_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    journal_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    user: Mapped["User"] = relationship(back_populates="pr_journal_entries")

    def __repr__(self) -> str:
        return f"<PrJournalEntry {self.pr_ref_hash[:12]} -> {self.journal_id}>"


class PendingPrSummary(Base, TimestampMixin):
    """
    Summary of a pull request that has not been journaled yet.

    Unique per (organization, repository, pull_request_number).
    """

    __tablename__ = "pending_pr_summaries"
    __table_args__ = (
        UniqueConstraint(
            "organization",
            "repository",
            "pull_request_number",
            name="uq_pending_pr_summary_ref",
        ),
    )

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    organization: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    repository: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    pull_request_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    pull_request_title: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
    )
    github_user_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        index=True,
    )
    github_username: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    summary: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<PendingPrSummary {self.organization}/{self.repository}"
            f"#{self.pull_request_number}>"
        )
