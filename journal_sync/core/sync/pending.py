"""
Pending pull-request summaries: generated, not yet journaled.
"""

from collections.abc import Awaitable, Callable
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.errors import Conflict
from journal_sync.core.models import PendingPrSummary
from journal_sync.core.sync.pr_index import PrRef


class PendingSummaryStore:
    """
    Keyed store of PendingPrSummary rows.

    Uniqueness on (organization, repository, number) is checked explicitly
    by find_or_create rather than left to the unique constraint.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, ref: PrRef) -> Optional[PendingPrSummary]:
        result = await self.db.execute(
            select(PendingPrSummary).where(
                PendingPrSummary.organization == ref.organization,
                PendingPrSummary.repository == ref.repository,
                PendingPrSummary.pull_request_number == ref.number,
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        ref: PrRef,
        title: str,
        github_user_id: int,
        github_username: str,
        summary: str,
    ) -> PendingPrSummary:
        """Insert a new pending summary. Raises Conflict if one already exists."""
        if await self.find(ref) is not None:
            raise Conflict(f"Summary for {ref} already exists")

        pending = PendingPrSummary(
            organization=ref.organization,
            repository=ref.repository,
            pull_request_number=ref.number,
            pull_request_title=title,
            github_user_id=github_user_id,
            github_username=github_username,
            summary=summary,
        )
        self.db.add(pending)
        await self.db.commit()
        return pending

    async def find_or_create(
        self,
        ref: PrRef,
        title: str,
        github_user_id: int,
        github_username: str,
        summarize: Callable[[], Awaitable[str]],
    ) -> tuple[PendingPrSummary, bool]:
        """
        Reuse the stored summary for ``ref`` or summarize and store a new one.

        ``summarize`` is only awaited when nothing is stored yet.

        Returns:
            (pending summary, created)
        """
        existing = await self.find(ref)
        if existing is not None:
            return existing, False

        summary = await summarize()
        pending = await self.create(ref, title, github_user_id, github_username, summary)
        return pending, True

    async def list_for_author(self, github_user_id: int) -> list[PendingPrSummary]:
        result = await self.db.execute(
            select(PendingPrSummary)
            .where(PendingPrSummary.github_user_id == github_user_id)
            .order_by(PendingPrSummary.created_at)
        )
        return list(result.scalars().all())

    async def count_for_author(self, github_user_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(PendingPrSummary)
            .where(PendingPrSummary.github_user_id == github_user_id)
        )
        return result.scalar_one()

    async def delete(self, pending: PendingPrSummary) -> None:
        """Delete a pending summary. Flushes, does not commit."""
        await self.db.delete(pending)
        await self.db.flush()
