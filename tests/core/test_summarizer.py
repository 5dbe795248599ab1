"""
Changed-files summarizer tests.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from journal_sync.core.summarizer import (
    FAILED_SUMMARY,
    NO_FILES_SUMMARY,
    NO_TEXT_SUMMARY,
    Summarizer,
    truncate_patch,
)

FILES = [
    {
        "filename": "src/api.py",
        "status": "modified",
        "additions": 10,
        "deletions": 2,
        "changes": 12,
        "patch": "@@ -1 +1 @@\n-old\n+new",
    },
]


def client_returning(*blocks) -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(content=list(blocks)))
    return client


class TestSummarize:

    async def test_empty_file_list_skips_completion(self):
        client = client_returning()
        summarizer = Summarizer(client)

        assert await summarizer.summarize([]) == NO_FILES_SUMMARY
        client.messages.create.assert_not_awaited()

    async def test_returns_first_text_block(self):
        client = client_returning(
            SimpleNamespace(type="tool_use", id="x"),
            SimpleNamespace(type="text", text="Adds a new endpoint."),
            SimpleNamespace(type="text", text="ignored"),
        )
        summarizer = Summarizer(client, model="test-model", max_tokens=123)

        assert await summarizer.summarize(FILES) == "Adds a new endpoint."

        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 123
        assert kwargs["messages"][0]["role"] == "user"
        assert "src/api.py" in kwargs["messages"][0]["content"]

    async def test_no_text_block(self):
        summarizer = Summarizer(client_returning(SimpleNamespace(type="tool_use")))
        assert await summarizer.summarize(FILES) == NO_TEXT_SUMMARY

    async def test_completion_failure_returns_fallback(self):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=RuntimeError("rate limited"))

        assert await Summarizer(client).summarize(FILES) == FAILED_SUMMARY

    async def test_unconfigured_client_returns_fallback(self):
        assert await Summarizer(None).summarize(FILES) == FAILED_SUMMARY


class TestPrompt:

    def test_long_patches_are_truncated(self):
        summarizer = Summarizer(None, patch_max_chars=10)
        files = [dict(FILES[0], patch="x" * 50)]

        prompt = summarizer.build_prompt(files)

        assert "x" * 11 not in prompt
        assert json.dumps("x" * 10 + "\n... [truncated]") in prompt

    def test_truncate_patch_keeps_short_and_missing_patches(self):
        assert truncate_patch("short", 10) == "short"
        assert truncate_patch(None, 10) is None
