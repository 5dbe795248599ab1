"""
PR Journal Sync - GitHub API
============================

Read-through GitHub endpoints plus the pull-request sync operations.

All endpoints require a session (bearer access token) and the caller's
GitHub token in the ``X-GitHub-Token`` header.
"""

from typing import Any

from fastapi import APIRouter, Query

from journal_sync.api.deps import (
    CurrentUser,
    GitHub,
    GitHubToken,
    Pipeline,
    SummarizerDep,
)
from journal_sync.core.schemas import (
    ContributorPageResponse,
    JournalPendingResponse,
    PendingSummaryStatus,
    PullRequestDetailsResponse,
    SyncRequest,
    SyncResultResponse,
)
from journal_sync.core.sync.journal import EncryptedCredentials

router = APIRouter(prefix="/github", tags=["GitHub"])

PageQuery = Query(1, ge=1)
PerPageQuery = Query(30, ge=1, le=100)


# ==========================================================================
# User
# ==========================================================================

@router.get("/user", summary="Get authenticated GitHub user")
async def get_user(
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
) -> dict[str, Any]:
    return await github.get_user(token)


@router.get("/user/emails", summary="List GitHub user emails")
async def get_user_emails(
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
) -> list[dict[str, Any]]:
    return await github.get_user_emails(token)


@router.get("/repositories", summary="List repositories")
async def get_repositories(
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
    page: int = PageQuery,
    per_page: int = PerPageQuery,
) -> list[dict[str, Any]]:
    return await github.get_repositories(token, page=page, per_page=per_page)


# ==========================================================================
# Pull Requests
# ==========================================================================

@router.get("/repos/{owner}/{repo}/pulls", summary="List pull requests")
async def get_pull_requests(
    owner: str,
    repo: str,
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
    page: int = PageQuery,
    per_page: int = PerPageQuery,
    state: str = Query("all", pattern="^(open|closed|all)$"),
) -> list[dict[str, Any]]:
    return await github.get_pull_requests(
        token, owner, repo, page=page, per_page=per_page, state=state
    )


@router.get(
    "/repos/{owner}/{repo}/pulls/{number}",
    response_model=PullRequestDetailsResponse,
    summary="Get pull request with changed files and summary",
)
async def get_pull_request_details(
    owner: str,
    repo: str,
    number: int,
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
    summarizer: SummarizerDep,
    skip_summary: bool = False,
) -> PullRequestDetailsResponse:
    """Pull request, its changed files and, unless skipped, a summary of the changes."""
    details = await github.get_pull_request_details(
        token, owner, repo, number,
        summarizer=None if skip_summary else summarizer,
    )
    return PullRequestDetailsResponse(
        pull_request=details.pull_request,
        files=details.files,
        summary=details.summary,
    )


@router.get(
    "/repos/{owner}/{repo}/pulls/{number}/contributors",
    response_model=ContributorPageResponse,
    summary="List contributors of a pull request",
)
async def get_pull_request_contributors(
    owner: str,
    repo: str,
    number: int,
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
    page: int = PageQuery,
    per_page: int = PerPageQuery,
) -> ContributorPageResponse:
    result = await github.get_pull_request_contributors(
        token, owner, repo, number, page=page, per_page=per_page
    )
    return ContributorPageResponse.model_validate(result)


@router.get(
    "/repos/{owner}/{repo}/contributors",
    response_model=ContributorPageResponse,
    summary="List repository contributors",
)
async def get_repository_contributors(
    owner: str,
    repo: str,
    current_user: CurrentUser,
    github: GitHub,
    token: GitHubToken,
    page: int = PageQuery,
    per_page: int = PerPageQuery,
) -> ContributorPageResponse:
    result = await github.get_repository_contributors(
        token, owner, repo, page=page, per_page=per_page
    )
    return ContributorPageResponse.model_validate(result)


# ==========================================================================
# Sync
# ==========================================================================

@router.post(
    "/repos/{organization}/{repository}/pull-requests/sync",
    response_model=SyncResultResponse,
    summary="Summarize and journal a repository's pull requests",
    responses={
        200: {"description": "Sync finished"},
        400: {"description": "Invalid credentials or unverified email"},
        401: {"description": "Not authenticated or missing GitHub token"},
    },
)
async def sync_pull_requests(
    organization: str,
    repository: str,
    data: SyncRequest,
    current_user: CurrentUser,
    pipeline: Pipeline,
    token: GitHubToken,
) -> SyncResultResponse:
    """
    Walk every pull request of the repository.

    Already journaled PRs are skipped. New PRs get a stored summary, and
    PRs authored by the caller are journaled right away.
    """
    credentials = EncryptedCredentials(
        email=data.encrypted_credentials.email,
        password=data.encrypted_credentials.password,
    )
    result = await pipeline.sync_repository(token, organization, repository, credentials)
    return SyncResultResponse(
        processed=result.processed,
        skipped=result.skipped,
        journaled=result.journaled,
    )


@router.get(
    "/pull-requests/summaries",
    response_model=PendingSummaryStatus,
    summary="Count pending summaries authored by the caller",
)
async def get_pending_summaries(
    current_user: CurrentUser,
    pipeline: Pipeline,
    token: GitHubToken,
) -> PendingSummaryStatus:
    status = await pipeline.pending_summary_status(token)
    return PendingSummaryStatus(**status)


@router.post(
    "/pull-requests/journal",
    response_model=JournalPendingResponse,
    summary="Journal all pending summaries authored by the caller",
)
async def journal_pending_summaries(
    data: SyncRequest,
    current_user: CurrentUser,
    pipeline: Pipeline,
    token: GitHubToken,
) -> JournalPendingResponse:
    credentials = EncryptedCredentials(
        email=data.encrypted_credentials.email,
        password=data.encrypted_credentials.password,
    )
    result = await pipeline.journal_pending(token, credentials)
    return JournalPendingResponse(journaled=result.journaled, failed=result.failed)
