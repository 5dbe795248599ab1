"""
PR Journal Sync - Journal API
=============================

Direct journal entry creation and lookup of journaled pull requests.
"""

from fastapi import APIRouter, status

from journal_sync.api.deps import CurrentUser, DbSession, GitHubToken, Handoff
from journal_sync.core.schemas import (
    JournalCreateRequest,
    JournalCreateResponse,
    JournalLookupResponse,
)
from journal_sync.core.sync.journal import EncryptedCredentials
from journal_sync.core.sync.pr_index import PrRefIndex

router = APIRouter(prefix="/journal", tags=["Journal"])


@router.post(
    "/create",
    response_model=JournalCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a journal entry",
    responses={
        201: {"description": "Entry created"},
        400: {"description": "Invalid credentials, unverified email or rejected entry"},
        401: {"description": "Journal rejected the credentials"},
        503: {"description": "Journal unreachable"},
    },
)
async def create_journal(
    data: JournalCreateRequest,
    current_user: CurrentUser,
    handoff: Handoff,
    token: GitHubToken,
) -> JournalCreateResponse:
    """
    Create a journal entry with encrypted credentials.

    When ``pr_ref`` (``org_repo_number``) is given the entry is recorded
    against it, so later syncs skip that pull request.
    """
    journal_id = await handoff.journal(
        token,
        EncryptedCredentials(
            email=data.encrypted_credentials.email,
            password=data.encrypted_credentials.password,
        ),
        title=data.title,
        content=data.content,
        pr_ref=data.pr_ref,
    )
    return JournalCreateResponse(journal_id=journal_id)


@router.get(
    "/by-pr/{pr_ref}",
    response_model=JournalLookupResponse,
    summary="Find the journal entry recorded for a pull request",
)
async def get_journal_by_pr_ref(
    pr_ref: str,
    current_user: CurrentUser,
    db: DbSession,
) -> JournalLookupResponse:
    journal_id = await PrRefIndex(db).lookup(current_user.id, pr_ref)
    return JournalLookupResponse(found=journal_id is not None, journal_id=journal_id)
