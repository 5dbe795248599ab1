"""Pull-request discovery, summarization and journal hand-off."""

from journal_sync.core.sync.journal import EncryptedCredentials, JournalGateway, JournalHandoff
from journal_sync.core.sync.pipeline import PrSyncPipeline, SyncResult
from journal_sync.core.sync.pr_index import PrRef, PrRefIndex, hash_pr_ref

__all__ = [
    "EncryptedCredentials",
    "JournalGateway",
    "JournalHandoff",
    "PrRef",
    "PrRefIndex",
    "PrSyncPipeline",
    "SyncResult",
    "hash_pr_ref",
]
