"""
Journal hand-off.

JournalGateway talks to the external work-journal service; JournalHandoff
decrypts the caller's credentials just-in-time, proves email ownership
against GitHub, creates the entry and records the PR → journal mapping.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from journal_sync.core.config import settings
from journal_sync.core.crypto import Cipher
from journal_sync.core.errors import (
    BadRequest,
    DecryptionFailure,
    MalformedCiphertext,
    ServiceUnavailable,
    Unauthorized,
)
from journal_sync.core.github import GitHubGateway
from journal_sync.core.models import PendingPrSummary, User
from journal_sync.core.sync.pending import PendingSummaryStore
from journal_sync.core.sync.pr_index import PrRef, PrRefIndex
from journal_sync.core.users import get_user_by_email

logger = structlog.get_logger()

IMPORT_JOURNAL_PATH = "/api/vendor/import-journal"


@dataclass(frozen=True)
class EncryptedCredentials:
    """Journal email and password, each an encrypted blob."""
    email: str
    password: str


class JournalCredentialsRejected(Unauthorized):
    default_message = "Invalid credentials for Work Journal API"


def decrypt_credentials(cipher: Cipher, credentials: EncryptedCredentials) -> tuple[str, str]:
    """
    Decrypt an email/password pair.

    Raises:
        BadRequest: If either blob is malformed or fails to decrypt
    """
    try:
        return cipher.decrypt(credentials.email), cipher.decrypt(credentials.password)
    except (MalformedCiphertext, DecryptionFailure) as e:
        raise BadRequest("Invalid encrypted credentials") from e


def decrypt_email(cipher: Cipher, blob: str) -> str:
    try:
        return cipher.decrypt(blob)
    except (MalformedCiphertext, DecryptionFailure) as e:
        raise BadRequest("Invalid encrypted credentials") from e


async def ensure_verified_email(github: GitHubGateway, token: str, email: str) -> None:
    """
    Require ``email`` to be one of the GitHub account's verified emails.

    Raises:
        BadRequest: If it is absent or unverified on GitHub
    """
    verified = await github.get_verified_emails(token)
    if email.lower() not in verified:
        raise BadRequest(
            "Email is not verified on GitHub. Please use a verified GitHub email."
        )


class JournalGateway:
    """HTTP client for the work-journal import endpoint."""

    def __init__(
        self,
        origin: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.origin = (origin or settings.JOURNAL_ORIGIN).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.JOURNAL_TIMEOUT,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def create_entry(self, email: str, password: str, title: str, content: str) -> str:
        """
        Create a journal entry with plaintext credentials.

        Returns:
            The journal id assigned by the service

        Raises:
            JournalCredentialsRejected: 401/403 from the service
            BadRequest: Any other 4xx
            ServiceUnavailable: Connection refused, DNS failure or timeout
            Unauthorized: Anything else
        """
        url = f"{self.origin}{IMPORT_JOURNAL_PATH}"
        try:
            response = await self._client.post(
                url,
                json={
                    "email": email,
                    "password": password,
                    "title": title,
                    "content": content,
                },
                headers={"Content-Type": "application/json"},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.error("journal_unreachable", error=str(e))
            raise ServiceUnavailable("Could not connect to Work Journal service") from e
        except httpx.HTTPError as e:
            logger.error("journal_request_failed", error=str(e))
            raise Unauthorized("Invalid credentials") from e

        status_code = response.status_code
        if status_code in (200, 201):
            try:
                journal_id = response.json().get("journalId")
            except (ValueError, AttributeError):
                journal_id = None
            if journal_id is None:
                logger.error("journal_missing_id", status=status_code)
                raise Unauthorized("Failed to authenticate with Work Journal API")
            return str(journal_id)

        if status_code in (401, 403):
            raise JournalCredentialsRejected()

        if 400 <= status_code < 500:
            message = "Error communicating with external service"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
            except ValueError:
                pass
            raise BadRequest(message)

        logger.error("journal_unexpected_status", status=status_code)
        raise Unauthorized("Failed to authenticate with Work Journal API")


class JournalHandoff:
    """
    Hands one piece of content to the journal on behalf of a user.

    Shared by the sync pipeline, the flush of pending summaries and the
    standalone create-journal endpoint.
    """

    def __init__(
        self,
        db: AsyncSession,
        cipher: Cipher,
        github: GitHubGateway,
        gateway: JournalGateway,
    ):
        self.db = db
        self.cipher = cipher
        self.github = github
        self.gateway = gateway
        self.index = PrRefIndex(db)
        self.pending = PendingSummaryStore(db)

    async def journal(
        self,
        github_token: str,
        credentials: EncryptedCredentials,
        title: str,
        content: str,
        pr_ref: Optional[PrRef | str] = None,
        pending: Optional[PendingPrSummary] = None,
    ) -> str:
        """
        Create a journal entry and record it.

        On success the PR reference (when given) is mapped to the journal id,
        the pending summary (when given) is deleted and the user is marked
        verified. On failure nothing is written.

        Raises:
            BadRequest: Undecryptable credentials, unverified email, unknown user
            Unauthorized / BadRequest / ServiceUnavailable: From the journal service
        """
        email, password = decrypt_credentials(self.cipher, credentials)

        await ensure_verified_email(self.github, github_token, email)

        user: Optional[User] = await get_user_by_email(self.db, email)
        if user is None:
            raise BadRequest("Unable to find user. Sign up first.")

        journal_id = await self.gateway.create_entry(email, password, title, content)

        if not user.is_verified:
            user.is_verified = True
        if pr_ref is not None:
            await self.index.record(user.id, pr_ref, journal_id)
        if pending is not None:
            await self.pending.delete(pending)
        await self.db.commit()

        logger.info(
            "journal_entry_created",
            user_id=str(user.id),
            journal_id=journal_id,
            pr_ref=str(pr_ref) if pr_ref is not None else None,
        )
        return journal_id


def pending_ref(pending: PendingPrSummary) -> PrRef:
    return PrRef(pending.organization, pending.repository, pending.pull_request_number)
