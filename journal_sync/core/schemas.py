"""
PR Journal Sync - Pydantic Schemas
===================================

Request and response schemas for API validation.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ==========================================================================
# Auth Schemas
# ==========================================================================

class SignupRequest(BaseSchema):
    """Schema for user registration."""

    email: EmailStr
    password: str = Field(min_length=6, max_length=100)


class LoginRequest(BaseSchema):
    """Schema for user login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=100)


class TokenVerifyRequest(BaseSchema):
    token: str


class RefreshTokenRequest(BaseSchema):
    """Schema for token refresh."""

    refresh_token: str


class UserResponse(BaseSchema):
    """Schema for user in responses (no password)."""

    id: UUID
    email: EmailStr
    is_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class EncryptedCredentialsSchema(BaseSchema):
    """Journal email and password, each as a ``base64(iv):base64(ciphertext)`` blob."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AuthResponse(BaseSchema):
    """Tokens and user returned by signup, login and refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserResponse
    encrypted_credentials: Optional[EncryptedCredentialsSchema] = None


class TokenVerifyResponse(BaseSchema):
    valid: bool
    user: UserResponse


# ==========================================================================
# GitHub Schemas
# ==========================================================================

class ContributorResponse(BaseSchema):
    id: Optional[int] = None
    login: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None
    contributions: int = 0


class ContributorPageResponse(BaseSchema):
    """One page of contributors, with an estimated total when GitHub provides one."""

    repository: str
    contributors: list[ContributorResponse]
    current_page: int
    per_page: int
    total_contributors: Optional[int] = None
    pull_number: Optional[int] = None


class PullRequestDetailsResponse(BaseSchema):
    pull_request: dict[str, Any]
    files: list[dict[str, Any]]
    summary: Optional[str] = None


class SyncRequest(BaseSchema):
    encrypted_credentials: EncryptedCredentialsSchema


class SyncResultResponse(BaseSchema):
    """Counts from one repository sync."""

    processed: int
    skipped: int
    journaled: int


class JournalPendingResponse(BaseSchema):
    journaled: int
    failed: int


class PendingSummaryStatus(BaseSchema):
    summaries: int
    found: bool


# ==========================================================================
# Journal Schemas
# ==========================================================================

class JournalCreateRequest(BaseSchema):
    """Schema for creating a journal entry directly."""

    encrypted_credentials: EncryptedCredentialsSchema
    title: str = Field(min_length=1, max_length=1024)
    content: str = Field(min_length=1)
    pr_ref: Optional[str] = Field(None, max_length=1024)


class JournalCreateResponse(BaseSchema):
    journal_id: str


class JournalLookupResponse(BaseSchema):
    found: bool
    journal_id: Optional[str] = None


# ==========================================================================
# Common Response Schemas
# ==========================================================================

class MessageResponse(BaseSchema):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    environment: str
    database: str
