"""GitHub extractor: fetch a user and their repositories, then normalize.

Stateless and safe under unlimited concurrency.  Does not retry; every
failure is raised as a :class:`~portfolio_pipeline.core.exceptions.SourceFetchError`
for the worker to record.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

import httpx

from portfolio_pipeline.core.exceptions import (
    SourceFetchError,
    SourceNotFoundError,
    SourceRateLimitError,
)
from portfolio_pipeline.sources.github.config import (
    GITHUB_ACCEPT,
    GITHUB_REPOS_PATH,
    GITHUB_USER_AGENT,
    GITHUB_USER_PATH,
    GITHUB_USERNAME_PATTERN,
    REPO_DESCRIPTION_PLACEHOLDER,
)

logger = logging.getLogger(__name__)

_SOURCE = "github"


def extract_username(url: str) -> str | None:
    """Return the username from a ``github.com/<username>`` URL, or ``None``."""
    if not url:
        return None
    match = GITHUB_USERNAME_PATTERN.search(url)
    return match.group(1) if match else None


def derive_skills(repos: list[dict[str, Any]]) -> list[str]:
    """Build the skills list from repository metadata.

    Topics come first in first-seen order, followed by languages ordered by
    the number of repositories using them (ties keep first-seen order).
    Duplicates are dropped.
    """
    skills: dict[str, None] = {}
    language_counts: Counter[str] = Counter()
    for repo in repos:
        for topic in repo.get("topics") or []:
            skills.setdefault(topic, None)
        language = repo.get("language")
        if language:
            language_counts[language] += 1

    for language, _count in sorted(
        language_counts.items(), key=lambda item: item[1], reverse=True
    ):
        skills.setdefault(language, None)
    return list(skills)


class GitHubCollector:
    """Fetches and normalizes a GitHub profile.

    Args:
        token: Personal access token.  Requests are unauthenticated when
            empty.
        api_base: REST API base URL.
        timeout: Per-request timeout in seconds.
        repos_per_page: ``per_page`` for the repository listing.
        http_client: Optional injected :class:`httpx.AsyncClient` (tests).
            An injected client is not closed by the collector.
    """

    def __init__(
        self,
        token: str = "",
        api_base: str = "https://api.github.com",
        timeout: float = 30.0,
        repos_per_page: int = 100,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._repos_per_page = repos_per_page
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Any) -> "GitHubCollector":
        return cls(
            token=settings.github_token,
            api_base=settings.github_api_base,
            timeout=settings.github_timeout_seconds,
            repos_per_page=settings.github_repos_per_page,
        )

    async def fetch_profile(self, url: str) -> dict[str, Any]:
        """Fetch and normalize the profile at *url*.

        Raises:
            SourceNotFoundError: The user does not exist.
            SourceRateLimitError: The API rate limit is exhausted.
            SourceFetchError: The URL has no username, or any call failed.
        """
        username = extract_username(url)
        if not username:
            raise SourceFetchError("Invalid GitHub URL", source=_SOURCE)

        if self._http_client is not None:
            user, repos = await self._fetch(self._http_client, username)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                user, repos = await self._fetch(client, username)

        logger.info("github: fetched %s (%d repos)", username, len(repos))
        return self.normalize(username, user, repos)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        username: str,
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        user = await self._make_get_request(
            client, GITHUB_USER_PATH.format(username=username), {}
        )
        repos = await self._make_get_request(
            client,
            GITHUB_REPOS_PATH.format(username=username),
            {"per_page": self._repos_per_page},
        )
        if not isinstance(user, dict) or not isinstance(repos, list):
            raise SourceFetchError(
                "Hybrid GitHub Fetch failed: unexpected response shape",
                source=_SOURCE,
            )
        return user, repos

    def normalize(
        self,
        username: str,
        user: dict[str, Any],
        repos: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Map raw API payloads to the stored GitHub schema."""
        languages = list(dict.fromkeys(r["language"] for r in repos if r.get("language")))
        return {
            "username": username,
            "name": user.get("name"),
            "bio": user.get("bio"),
            "followers": user.get("followers", 0),
            "following": user.get("following", 0),
            "totalRepos": len(repos),
            "skills": derive_skills(repos),
            "languages": languages,
            "repos": [
                {
                    "name": repo.get("name"),
                    "description": repo.get("description") or REPO_DESCRIPTION_PLACEHOLDER,
                    "language": repo.get("language"),
                    "stars": repo.get("stargazers_count", 0),
                    "forks": repo.get("forks_count", 0),
                    "url": repo.get("html_url"),
                    "topics": repo.get("topics") or [],
                }
                for repo in repos
            ],
        }

    def _headers(self) -> dict[str, str]:
        headers = {"User-Agent": GITHUB_USER_AGENT, "Accept": GITHUB_ACCEPT}
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    async def _make_get_request(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, Any],
    ) -> Any:
        """Make an authenticated GET request to the GitHub API.

        Raises:
            SourceNotFoundError: On HTTP 404.
            SourceRateLimitError: On HTTP 429, or 403 with an exhausted limit.
            SourceFetchError: On other non-2xx responses or transport errors.
        """
        url = f"{self._api_base}{path}"
        try:
            response = await client.get(url, params=params, headers=self._headers())
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            headers = exc.response.headers
            if status == 404:
                raise SourceNotFoundError(
                    f"Hybrid GitHub Fetch failed: GitHub API Error: 404 not found: {path}",
                    source=_SOURCE,
                ) from exc
            if status == 429 or (status == 403 and headers.get("X-RateLimit-Remaining") == "0"):
                retry_after = float(headers.get("Retry-After", 60))
                raise SourceRateLimitError(
                    f"Hybrid GitHub Fetch failed: GitHub API Error: {status} rate limit",
                    retry_after=retry_after,
                    source=_SOURCE,
                ) from exc
            raise SourceFetchError(
                f"Hybrid GitHub Fetch failed: GitHub API Error: HTTP {status} for {path}",
                source=_SOURCE,
            ) from exc
        except httpx.RequestError as exc:
            raise SourceFetchError(
                f"Hybrid GitHub Fetch failed: GitHub API Error: {exc}",
                source=_SOURCE,
            ) from exc
        except ValueError as exc:
            raise SourceFetchError(
                f"Hybrid GitHub Fetch failed: invalid JSON from {path}",
                source=_SOURCE,
            ) from exc
