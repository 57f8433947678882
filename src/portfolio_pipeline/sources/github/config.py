"""GitHub source configuration.

The extractor makes two unauthenticated-or-token calls per profile and never
paginates: ``/repos`` is read once with ``per_page`` at the API maximum.

Rate limits: 60 req/hour unauthenticated, 5000 req/hour with a token.  An
exhausted limit is reported as HTTP 403 (or 429) with
``X-RateLimit-Remaining: 0``.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------

GITHUB_USER_PATH: str = "/users/{username}"
"""User profile endpoint - fill in ``username`` before use."""

GITHUB_REPOS_PATH: str = "/users/{username}/repos"
"""Public repository listing - fill in ``username`` before use."""

# ---------------------------------------------------------------------------
# Request constants
# ---------------------------------------------------------------------------

GITHUB_USER_AGENT: str = "PortfolioPipeline-Crawler"
"""GitHub rejects API requests without a User-Agent."""

GITHUB_ACCEPT: str = "application/vnd.github+json"
"""Media type that includes repository ``topics`` in listings."""

GITHUB_USERNAME_PATTERN: re.Pattern[str] = re.compile(r"github\.com/([^/?#\s]+)", re.IGNORECASE)
"""Captures the first path segment after ``github.com/``."""

REPO_DESCRIPTION_PLACEHOLDER: str = "N/A"
"""Stored when a repository has no description."""
