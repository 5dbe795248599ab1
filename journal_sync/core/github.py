"""
PR Journal Sync - GitHub Gateway
=================================

Thin typed wrapper over the GitHub REST API v3.

Every call needs the caller's GitHub token. Failures are normalized once,
here:
- GitHub answered with an error status -> UpstreamError(status, message)
- network, timeout or unparseable body   -> ServiceUnavailable

Transport errors and 502/503/504 are retried with exponential backoff
before being normalized.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from journal_sync.core.config import settings
from journal_sync.core.errors import ServiceUnavailable, Unauthorized, UpstreamError

if TYPE_CHECKING:
    from journal_sync.core.summarizer import Summarizer

logger = structlog.get_logger()

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 30
RETRYABLE_STATUSES = {502, 503, 504}


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUSES
    return False


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "GitHub API error"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return "GitHub API error"


def estimate_total_from_links(response: httpx.Response, per_page: int) -> Optional[int]:
    """
    Approximate a collection size from the ``rel="last"`` pagination link.

    Returns None when the header has no last-page hint (total unknown).
    """
    last = response.links.get("last")
    if not last or not last.get("url"):
        return None
    pages = parse_qs(urlparse(last["url"]).query).get("page")
    if not pages:
        return None
    try:
        return int(pages[0]) * per_page
    except ValueError:
        return None


@dataclass
class ContributorPage:
    """One page of contributors plus pagination info."""
    repository: str
    contributors: list[dict[str, Any]]
    current_page: int
    per_page: int
    total_contributors: Optional[int] = None
    pull_number: Optional[int] = None


@dataclass
class PullRequestDetails:
    """A pull request with its changed files and optional summary."""
    pull_request: dict[str, Any]
    files: list[dict[str, Any]] = field(default_factory=list)
    summary: Optional[str] = None


class GitHubGateway:
    """
    Async GitHub REST client.

    One httpx.AsyncClient is shared for connection pooling; the token is sent
    per request because every caller brings their own.

    Example:
        >>> gateway = GitHubGateway()
        >>> user = await gateway.get_user(token)
        >>> prs = await gateway.get_pull_requests(token, "octo", "repo", page=2)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.GITHUB_API_URL).rstrip("/")
        self.max_attempts = max_attempts or settings.GITHUB_MAX_RETRIES
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.GITHUB_TIMEOUT,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    @staticmethod
    def _auth_headers(token: Optional[str]) -> dict[str, str]:
        if not token:
            raise Unauthorized("GitHub token is required")
        return {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3+json",
        }

    async def _send(
        self,
        path: str,
        token: Optional[str],
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = self._auth_headers(token)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.get(path, headers=headers, params=params)
                    response.raise_for_status()
                    return response
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message = _error_message(e.response)
            logger.warning("github_api_error", path=path, status=status_code, message=message)
            raise UpstreamError(status_code, message) from e
        except httpx.HTTPError as e:
            logger.error("github_unreachable", path=path, error=str(e))
            raise ServiceUnavailable("GitHub is unavailable") from e
        raise ServiceUnavailable("GitHub is unavailable")

    async def _get_json(
        self,
        path: str,
        token: Optional[str],
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        response = await self._send(path, token, params)
        try:
            return response.json()
        except ValueError as e:
            logger.error("github_bad_payload", path=path)
            raise ServiceUnavailable("GitHub returned an unreadable response") from e

    # ==========================================================================
    # User
    # ==========================================================================

    async def get_user(self, token: str) -> dict[str, Any]:
        """Get the authenticated GitHub user."""
        return await self._get_json("/user", token)

    async def get_user_emails(self, token: str) -> list[dict[str, Any]]:
        """List the authenticated user's email addresses."""
        return await self._get_json("/user/emails", token)

    async def get_verified_emails(self, token: str) -> set[str]:
        """Lower-cased set of the user's verified email addresses."""
        emails = await self.get_user_emails(token)
        return {
            e["email"].lower()
            for e in emails
            if e.get("verified") and e.get("email")
        }

    async def get_repositories(
        self,
        token: str,
        page: int = DEFAULT_PAGE,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> list[dict[str, Any]]:
        """List repositories of the authenticated user, most recently updated first."""
        return await self._get_json(
            "/user/repos",
            token,
            params={
                "page": page,
                "per_page": per_page,
                "sort": "updated",
                "direction": "desc",
            },
        )

    # ==========================================================================
    # Pull Requests
    # ==========================================================================

    async def get_pull_requests(
        self,
        token: str,
        owner: str,
        repo: str,
        page: int = DEFAULT_PAGE,
        per_page: int = DEFAULT_PER_PAGE,
        state: str = "all",
        sort: str = "updated",
        direction: str = "desc",
    ) -> list[dict[str, Any]]:
        """List one page of a repository's pull requests."""
        return await self._get_json(
            f"/repos/{owner}/{repo}/pulls",
            token,
            params={
                "page": page,
                "per_page": per_page,
                "state": state,
                "sort": sort,
                "direction": direction,
            },
        )

    async def get_pull_request(
        self, token: str, owner: str, repo: str, number: int
    ) -> dict[str, Any]:
        return await self._get_json(f"/repos/{owner}/{repo}/pulls/{number}", token)

    async def get_pull_request_files(
        self, token: str, owner: str, repo: str, number: int
    ) -> list[dict[str, Any]]:
        """List files changed in a pull request (filename, status, additions, deletions, patch)."""
        return await self._get_json(f"/repos/{owner}/{repo}/pulls/{number}/files", token)

    async def get_pull_request_commits(
        self, token: str, owner: str, repo: str, number: int
    ) -> list[dict[str, Any]]:
        return await self._get_json(f"/repos/{owner}/{repo}/pulls/{number}/commits", token)

    async def get_pull_request_details(
        self,
        token: str,
        owner: str,
        repo: str,
        number: int,
        summarizer: Optional["Summarizer"] = None,
    ) -> PullRequestDetails:
        """Fetch a pull request with its files, summarizing them when a summarizer is given."""
        pull_request = await self.get_pull_request(token, owner, repo, number)
        files = await self.get_pull_request_files(token, owner, repo, number)
        details = PullRequestDetails(pull_request=pull_request, files=files)
        if summarizer is not None:
            details.summary = await summarizer.summarize(files)
        return details

    # ==========================================================================
    # Contributors
    # ==========================================================================

    async def get_repository_contributors(
        self,
        token: str,
        owner: str,
        repo: str,
        page: int = DEFAULT_PAGE,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> ContributorPage:
        """
        List one page of repository contributors.

        total_contributors is estimated from the Link header's last page and
        stays None when GitHub sends no such hint.
        """
        response = await self._send(
            f"/repos/{owner}/{repo}/contributors",
            token,
            params={"page": page, "per_page": per_page, "anon": "false"},
        )
        try:
            data = response.json()
        except ValueError as e:
            raise ServiceUnavailable("GitHub returned an unreadable response") from e

        contributors = [
            {
                "id": c.get("id"),
                "login": c.get("login"),
                "avatar_url": c.get("avatar_url"),
                "html_url": c.get("html_url"),
                "contributions": c.get("contributions", 0),
            }
            for c in data
        ]
        return ContributorPage(
            repository=f"{owner}/{repo}",
            contributors=contributors,
            current_page=page,
            per_page=per_page,
            total_contributors=estimate_total_from_links(response, per_page),
        )

    async def get_pull_request_contributors(
        self,
        token: str,
        owner: str,
        repo: str,
        number: int,
        page: int = DEFAULT_PAGE,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> ContributorPage:
        """Repository contributors who authored commits in the pull request, most active first."""
        contributors_page = await self.get_repository_contributors(
            token, owner, repo, page=page, per_page=per_page
        )
        commits = await self.get_pull_request_commits(token, owner, repo, number)

        authors = {
            commit["author"]["login"]
            for commit in commits
            if commit.get("author") and commit["author"].get("login")
        }
        contributors_page.contributors = sorted(
            (c for c in contributors_page.contributors if c["login"] in authors),
            key=lambda c: c["contributions"],
            reverse=True,
        )
        contributors_page.pull_number = number
        return contributors_page
