"""
PR Journal Sync - Changed-Files Summarizer
===========================================

Turns the files changed by a pull request into a short prose summary using
the Anthropic Messages API. Summarization never raises: a failure yields a
fixed fallback text so the surrounding sync keeps going.
"""

import json
from functools import lru_cache
from typing import Any, Optional

import structlog
from anthropic import AsyncAnthropic

from journal_sync.core.config import settings

logger = structlog.get_logger()

NO_FILES_SUMMARY = "No files changed in this pull request."
NO_TEXT_SUMMARY = "Could not generate summary."
FAILED_SUMMARY = "Failed to generate summary of changed files."

PROMPT_TEMPLATE = """
You are an expert code reviewer. Analyze the following files changed in a pull request and provide a concise summary:

{files}

Focus on:
1. What types of files were changed (frontend, backend, tests, configs, etc.)
2. The main components/systems affected
3. Notable patterns in the changes (e.g., "mostly adding new API endpoints" or "refactoring utility functions")
4. Potential impact areas

Keep your summary under 150 words and be specific about what was changed.
"""


def truncate_patch(patch: Optional[str], limit: int) -> Optional[str]:
    if patch is None or len(patch) <= limit:
        return patch
    return patch[:limit] + "\n... [truncated]"


class Summarizer:
    """Summarizes pull-request file changes with a single completion call."""

    def __init__(
        self,
        client: Optional[AsyncAnthropic],
        model: str = "claude-3-opus-20240229",
        max_tokens: int = 1000,
        patch_max_chars: int = 2000,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.patch_max_chars = patch_max_chars

    def build_prompt(self, files: list[dict[str, Any]]) -> str:
        details = [
            {
                "filename": f.get("filename"),
                "status": f.get("status"),
                "additions": f.get("additions"),
                "deletions": f.get("deletions"),
                "changes": f.get("changes"),
                "patch": truncate_patch(f.get("patch"), self.patch_max_chars),
            }
            for f in files
        ]
        return PROMPT_TEMPLATE.format(files=json.dumps(details, indent=2))

    async def summarize(self, files: list[dict[str, Any]]) -> str:
        if not files:
            return NO_FILES_SUMMARY

        if self.client is None:
            logger.warning("summarizer_not_configured")
            return FAILED_SUMMARY

        prompt = self.build_prompt(files)
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.error("summary_generation_failed", error=str(e), files=len(files))
            return FAILED_SUMMARY

        for block in response.content or []:
            if getattr(block, "type", None) == "text":
                return block.text

        return NO_TEXT_SUMMARY


@lru_cache
def get_summarizer() -> Summarizer:
    """Get the summarizer configured from settings."""
    client = None
    if settings.ANTHROPIC_API_KEY:
        client = AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.ANTHROPIC_TIMEOUT,
        )
    else:
        logger.warning("anthropic_no_api_key")

    return Summarizer(
        client=client,
        model=settings.ANTHROPIC_MODEL,
        max_tokens=settings.ANTHROPIC_MAX_TOKENS,
        patch_max_chars=settings.SUMMARY_PATCH_MAX_CHARS,
    )
