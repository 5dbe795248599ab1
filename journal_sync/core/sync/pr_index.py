"""
PR reference index: hashed ``org_repo_number`` → journal entry id, per user.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.models import PrJournalEntry


@dataclass(frozen=True)
class PrRef:
    """Identifies a pull request across GitHub and the journal."""
    organization: str
    repository: str
    number: int

    def __str__(self) -> str:
        return f"{self.organization}_{self.repository}_{self.number}"

    @property
    def hash_key(self) -> str:
        return hash_pr_ref(str(self))


def hash_pr_ref(pr_ref: str) -> str:
    """SHA-256 hex digest of a raw ``org_repo_number`` reference."""
    return hashlib.sha256(pr_ref.encode("utf-8")).hexdigest()


class PrRefIndex:
    """Per-user record of which pull requests are already journaled."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, user_id: UUID, key: str) -> Optional[PrJournalEntry]:
        result = await self.db.execute(
            select(PrJournalEntry).where(
                PrJournalEntry.user_id == user_id,
                PrJournalEntry.pr_ref_hash == key,
            )
        )
        return result.scalar_one_or_none()

    async def lookup(self, user_id: UUID, pr_ref: "PrRef | str") -> Optional[str]:
        """Journal id recorded for the PR, or None."""
        raw = str(pr_ref)
        entry = await self._get(user_id, hash_pr_ref(raw))
        return entry.journal_id if entry else None

    async def contains(self, user_id: UUID, pr_ref: "PrRef | str") -> bool:
        return await self.lookup(user_id, pr_ref) is not None

    async def record(self, user_id: UUID, pr_ref: "PrRef | str", journal_id: str) -> None:
        """Map the PR to a journal id. Overwrites an existing mapping. Flushes, does not commit."""
        key = hash_pr_ref(str(pr_ref))
        entry = await self._get(user_id, key)
        if entry is None:
            self.db.add(PrJournalEntry(user_id=user_id, pr_ref_hash=key, journal_id=journal_id))
        else:
            entry.journal_id = journal_id
        await self.db.flush()
