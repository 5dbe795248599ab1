"""
PR Journal Sync - Test Fixtures
================================

Shared pytest fixtures for all tests.
"""

import os

# Must be set before the application modules read their settings
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["DEMO_LOGIN_ENABLED"] = "true"
os.environ.pop("ANTHROPIC_API_KEY", None)

from collections.abc import AsyncGenerator, Callable  # noqa: E402
from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from journal_sync.api.deps import get_github_gateway, get_journal_gateway  # noqa: E402
from journal_sync.api.main import app  # noqa: E402
from journal_sync.core.crypto import Cipher, get_cipher  # noqa: E402
from journal_sync.core.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from journal_sync.core.github import GitHubGateway  # noqa: E402
from journal_sync.core.models import User  # noqa: E402
from journal_sync.core.summarizer import Summarizer, get_summarizer  # noqa: E402
from journal_sync.core.sync.journal import EncryptedCredentials, JournalGateway  # noqa: E402
from journal_sync.core.tokens import get_token_issuer  # noqa: E402
from journal_sync.core.users import create_user  # noqa: E402


# ==========================================================================
# Test Database Setup
# ==========================================================================

# One shared in-memory connection; the schema is rebuilt per test
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(test_engine)

TestingSessionLocal = async_sessionmaker(bind=test_engine, expire_on_commit=False, autoflush=False)

TEST_PASSWORD = "journal-pass"
CALLER_GITHUB_ID = 42


# ==========================================================================
# Database Fixtures
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a clean database session for each test.

    Creates all tables before test, drops after.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ==========================================================================
# Service Fixtures
# ==========================================================================

@pytest.fixture(scope="session")
def cipher() -> Cipher:
    """The process-wide cipher bound to the test ENCRYPTION_KEY."""
    return get_cipher()


@pytest.fixture
def github_mock() -> AsyncMock:
    """
    GitHub gateway fake for the caller ``alice`` (id 42).

    Pull request pages default to empty; tests set
    ``github_mock.get_pull_requests.side_effect``.
    """
    github = AsyncMock(spec=GitHubGateway)
    github.get_user.return_value = {"id": CALLER_GITHUB_ID, "login": "alice"}
    github.get_verified_emails.return_value = {"alice@example.com"}
    github.get_pull_requests.return_value = []
    github.get_pull_request_files.return_value = [
        {"filename": "app.py", "status": "modified", "additions": 3, "deletions": 1, "changes": 4},
    ]
    return github


@pytest.fixture
def summarizer_mock() -> AsyncMock:
    summarizer = AsyncMock(spec=Summarizer)
    summarizer.summarize.return_value = "Touches the API layer."
    return summarizer


@pytest.fixture
def journal_mock() -> AsyncMock:
    journal = AsyncMock(spec=JournalGateway)
    counter = iter(range(1, 10_000))

    async def create_entry(email: str, password: str, title: str, content: str) -> str:
        return f"journal-{next(counter)}"

    journal.create_entry.side_effect = create_entry
    return journal


# ==========================================================================
# HTTP Client
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    github_mock: AsyncMock,
    journal_mock: AsyncMock,
    summarizer_mock: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database and outbound service overrides.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_github_gateway] = lambda: github_mock
    app.dependency_overrides[get_journal_gateway] = lambda: journal_mock
    app.dependency_overrides[get_summarizer] = lambda: summarizer_mock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==========================================================================
# User Fixtures
# ==========================================================================

@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """
    Create a test user whose email is verified on the fake GitHub account.

    Password: journal-pass
    """
    user = await create_user(db_session, "alice@example.com", TEST_PASSWORD)
    await db_session.commit()
    return user


@pytest.fixture
def credentials(cipher: Cipher) -> EncryptedCredentials:
    """Encrypted credentials of test_user, as returned by login."""
    return EncryptedCredentials(
        email=cipher.encrypt("alice@example.com"),
        password=cipher.encrypt(TEST_PASSWORD),
    )


# ==========================================================================
# Auth Fixtures
# ==========================================================================

@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Get authorization headers for test user, including a GitHub token."""
    token = get_token_issuer().issue_access_token(test_user.id, test_user.email)
    return {
        "Authorization": f"Bearer {token}",
        "X-GitHub-Token": "gh-test-token",
    }


# ==========================================================================
# Helper Functions
# ==========================================================================

def make_pull_requests(
    numbers: range,
    author_id: int = CALLER_GITHUB_ID,
    author_login: Optional[str] = None,
) -> list[dict]:
    """GitHub-shaped pull request list items."""
    login = author_login or ("alice" if author_id == CALLER_GITHUB_ID else f"user{author_id}")
    return [
        {
            "number": n,
            "title": f"PR {n}",
            "user": {"id": author_id, "login": login},
        }
        for n in numbers
    ]


def unique_email() -> str:
    """Generate a unique email for tests."""
    return f"test_{uuid4().hex[:8]}@example.com"


@pytest.fixture
def pr_factory() -> Callable[..., list[dict]]:
    return make_pull_requests


@pytest.fixture
def email_factory() -> Callable[[], str]:
    return unique_email
