"""
PR Journal Sync - API Dependencies
===================================

Shared dependencies for FastAPI endpoints.
"""

from functools import lru_cache
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.config import settings
from journal_sync.core.crypto import Cipher, get_cipher
from journal_sync.core.database import get_db
from journal_sync.core.errors import InvalidOrExpiredToken, Unauthorized
from journal_sync.core.github import GitHubGateway
from journal_sync.core.models import User
from journal_sync.core.refresh_tokens import RefreshTokenStore
from journal_sync.core.summarizer import Summarizer, get_summarizer
from journal_sync.core.sync.journal import JournalGateway, JournalHandoff
from journal_sync.core.sync.pipeline import PrSyncPipeline
from journal_sync.core.tokens import TokenIssuer, get_token_issuer
from journal_sync.core.users import get_user_by_id


# ==========================================================================
# Security
# ==========================================================================

security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def client_ip(request: Request) -> str:
    """Best-effort caller address for the refresh-token audit trail."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


ClientIp = Annotated[str, Depends(client_ip)]


# ==========================================================================
# Service Dependencies
# ==========================================================================

@lru_cache
def get_github_gateway() -> GitHubGateway:
    """Process-wide GitHub client, closed on shutdown."""
    return GitHubGateway()


@lru_cache
def get_journal_gateway() -> JournalGateway:
    """Process-wide journal client, closed on shutdown."""
    return JournalGateway()


def get_refresh_store(
    db: DbSession,
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> RefreshTokenStore:
    return RefreshTokenStore(db, issuer, expire_days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def get_handoff(
    db: DbSession,
    cipher: Annotated[Cipher, Depends(get_cipher)],
    github: Annotated[GitHubGateway, Depends(get_github_gateway)],
    journal: Annotated[JournalGateway, Depends(get_journal_gateway)],
) -> JournalHandoff:
    return JournalHandoff(db, cipher, github, journal)


def get_pipeline(
    db: DbSession,
    cipher: Annotated[Cipher, Depends(get_cipher)],
    github: Annotated[GitHubGateway, Depends(get_github_gateway)],
    summarizer: Annotated[Summarizer, Depends(get_summarizer)],
    handoff: Annotated[JournalHandoff, Depends(get_handoff)],
) -> PrSyncPipeline:
    return PrSyncPipeline(
        db, cipher, github, summarizer, handoff, per_page=settings.GITHUB_PER_PAGE
    )


# ==========================================================================
# User Dependencies
# ==========================================================================

async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DbSession,
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> User:
    """
    Get the current authenticated user.

    Raises:
        Unauthorized: If no bearer token is sent
        InvalidOrExpiredToken: If the token is invalid or its user is gone
    """
    if credentials is None:
        raise Unauthorized("Not authenticated")

    claims = issuer.verify_access(credentials.credentials)

    try:
        user_id = UUID(claims["sub"])
    except ValueError as e:
        raise InvalidOrExpiredToken() from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise InvalidOrExpiredToken()

    return user


async def get_github_token(
    x_github_token: Annotated[str, Header(alias="X-GitHub-Token")] = "",
) -> str:
    """GitHub access token of the caller. Empty tokens are rejected by the gateway."""
    return x_github_token.strip()


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

CurrentUser = Annotated[User, Depends(get_current_user)]
GitHubToken = Annotated[str, Depends(get_github_token)]
GitHub = Annotated[GitHubGateway, Depends(get_github_gateway)]
CipherDep = Annotated[Cipher, Depends(get_cipher)]
Issuer = Annotated[TokenIssuer, Depends(get_token_issuer)]
RefreshStore = Annotated[RefreshTokenStore, Depends(get_refresh_store)]
Handoff = Annotated[JournalHandoff, Depends(get_handoff)]
Pipeline = Annotated[PrSyncPipeline, Depends(get_pipeline)]
SummarizerDep = Annotated[Summarizer, Depends(get_summarizer)]
