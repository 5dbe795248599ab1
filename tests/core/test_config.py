"""
Settings validation tests.
"""

import pytest
from pydantic import ValidationError

from journal_sync.core.config import INSECURE_JWT_SECRET, Settings


def test_refresh_secret_falls_back_to_jwt_secret():
    config = Settings(JWT_SECRET="access-only", REFRESH_TOKEN_SECRET=None)
    assert config.refresh_secret == "access-only"


def test_upstream_origins_lose_trailing_slash():
    config = Settings(JOURNAL_ORIGIN="http://journal.test/", GITHUB_API_URL="https://gh.test/")
    assert config.JOURNAL_ORIGIN == "http://journal.test"
    assert config.GITHUB_API_URL == "https://gh.test"


def test_production_requires_jwt_secret():
    with pytest.raises(ValidationError, match="JWT_SECRET"):
        Settings(ENVIRONMENT="production", JWT_SECRET=INSECURE_JWT_SECRET, DEMO_LOGIN_ENABLED=False)


def test_production_rejects_demo_login():
    with pytest.raises(ValidationError, match="DEMO_LOGIN_ENABLED"):
        Settings(ENVIRONMENT="production", JWT_SECRET="long-random", DEMO_LOGIN_ENABLED=True)


def test_sqlite_detection():
    assert Settings(DATABASE_URL="sqlite+aiosqlite:///:memory:").is_sqlite is True
    assert Settings(DATABASE_URL="postgresql+asyncpg://db/journal").is_sqlite is False
