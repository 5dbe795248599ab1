"""
Pull-Request Sync Pipeline - scan, dedup, summarize, journal.

Walks every pull request of a repository page by page. Each PR not yet
journaled by the caller gets a stored summary; PRs authored by the caller
are then handed off to the journal and recorded so a rerun skips them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.crypto import Cipher
from journal_sync.core.errors import AppError, BadRequest
from journal_sync.core.github import DEFAULT_PER_PAGE, GitHubGateway
from journal_sync.core.summarizer import Summarizer
from journal_sync.core.sync.journal import (
    EncryptedCredentials,
    JournalHandoff,
    decrypt_email,
    ensure_verified_email,
    pending_ref,
)
from journal_sync.core.sync.pending import PendingSummaryStore
from journal_sync.core.sync.pr_index import PrRef, PrRefIndex
from journal_sync.core.users import get_user_by_email

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    processed: int = 0
    skipped: int = 0
    journaled: int = 0


@dataclass
class FlushResult:
    journaled: int = 0
    failed: int = 0


class PrSyncPipeline:
    """
    Syncs a repository's pull requests into the caller's journal.

    Page and PR loops are strictly sequential. Each PR moves through its
    own commits (pending summary, then journal mapping and pending delete),
    so an interrupted run leaves at most a reusable pending summary behind.
    """

    def __init__(
        self,
        db: AsyncSession,
        cipher: Cipher,
        github: GitHubGateway,
        summarizer: Summarizer,
        handoff: JournalHandoff,
        per_page: int = DEFAULT_PER_PAGE,
    ):
        self.db = db
        self.cipher = cipher
        self.github = github
        self.summarizer = summarizer
        self.handoff = handoff
        self.per_page = per_page
        self.index = PrRefIndex(db)
        self.pending = PendingSummaryStore(db)

    async def _resolve_caller(
        self, token: str, credentials: EncryptedCredentials
    ) -> tuple[UUID, dict[str, Any]]:
        """
        Check preconditions before any pull request is fetched.

        Returns:
            (user id, GitHub user)

        Raises:
            BadRequest: Undecryptable email, unknown user or unverified email
        """
        email = decrypt_email(self.cipher, credentials.email)

        user = await get_user_by_email(self.db, email)
        if user is None:
            raise BadRequest("Unable to find user. Sign up first.")

        github_user = await self.github.get_user(token)
        await ensure_verified_email(self.github, token, email)
        return user.id, github_user

    async def sync_repository(
        self,
        token: str,
        organization: str,
        repository: str,
        credentials: EncryptedCredentials,
    ) -> SyncResult:
        """
        Summarize and journal all pull requests of a repository.

        Args:
            token: GitHub access token
            organization: Repository owner
            repository: Repository name
            credentials: Encrypted journal email and password

        Returns:
            Counts of summarized, skipped and journaled pull requests
        """
        user_id, github_user = await self._resolve_caller(token, credentials)
        caller_github_id = github_user.get("id")

        result = SyncResult()
        page = 1

        while True:
            pull_requests = await self.github.get_pull_requests(
                token,
                organization,
                repository,
                page=page,
                per_page=self.per_page,
                state="all",
                sort="created",
                direction="desc",
            )

            for pr in pull_requests:
                ref = PrRef(organization, repository, pr["number"])
                try:
                    await self._process_pull_request(
                        token, pr, ref, user_id, caller_github_id, credentials, result
                    )
                except Exception as e:
                    logger.error(f"Error processing PR #{ref.number} in {organization}/{repository}: {e}")
                    await self.db.rollback()

            if len(pull_requests) < self.per_page:
                break
            page += 1

        logger.info(
            f"Synced {organization}/{repository}: processed={result.processed} "
            f"skipped={result.skipped} journaled={result.journaled}"
        )
        return result

    async def _process_pull_request(
        self,
        token: str,
        pr: dict[str, Any],
        ref: PrRef,
        user_id: UUID,
        caller_github_id: Optional[int],
        credentials: EncryptedCredentials,
        result: SyncResult,
    ) -> None:
        if await self.index.contains(user_id, ref):
            result.skipped += 1
            return

        author = pr.get("user") or {}

        async def summarize() -> str:
            files = await self.github.get_pull_request_files(
                token, ref.organization, ref.repository, ref.number
            )
            return await self.summarizer.summarize(files)

        pending, created = await self.pending.find_or_create(
            ref,
            title=pr.get("title") or "",
            github_user_id=author.get("id"),
            github_username=author.get("login") or "",
            summarize=summarize,
        )
        if created:
            result.processed += 1

        if caller_github_id is None or author.get("id") != caller_github_id:
            return

        try:
            await self.handoff.journal(
                token,
                credentials,
                title=pending.pull_request_title,
                content=pending.summary or "",
                pr_ref=ref,
                pending=pending,
            )
        except AppError as e:
            logger.warning(f"Journal hand-off failed for PR #{ref.number}: {e.message}")
            return

        result.journaled += 1

    async def journal_pending(
        self, token: str, credentials: EncryptedCredentials
    ) -> FlushResult:
        """
        Hand off every pending summary authored by the caller.

        Failed hand-offs stay pending for a later retry.
        """
        _, github_user = await self._resolve_caller(token, credentials)

        result = FlushResult()
        for pending in await self.pending.list_for_author(github_user["id"]):
            ref = pending_ref(pending)
            try:
                await self.handoff.journal(
                    token,
                    credentials,
                    title=pending.pull_request_title,
                    content=pending.summary or "",
                    pr_ref=ref,
                    pending=pending,
                )
                result.journaled += 1
            except AppError as e:
                logger.warning(f"Journal hand-off failed for PR #{ref.number}: {e.message}")
                result.failed += 1

        return result

    async def pending_summary_status(self, token: str) -> dict[str, Any]:
        """Count of pending summaries authored by the token's GitHub user."""
        github_user = await self.github.get_user(token)
        count = await self.pending.count_for_author(github_user["id"])
        return {"summaries": count, "found": count > 0}
