"""
PR Journal Sync - Core Package
==============================

Credential relay, tokens, GitHub access, summarization and the sync pipeline.
"""

from journal_sync.core.config import settings
from journal_sync.core.database import Base, get_db

__all__ = ["Base", "get_db", "settings"]
