"""Application-wide exception hierarchy for the portfolio pipeline.

All custom exceptions subclass ``PortfolioPipelineError``, enabling
consistent error handling and structured logging across the workers.

Hierarchy::

    PortfolioPipelineError
    ├── JobValidationError          (missing_fields: list[str])
    ├── SourceFetchError            (API-based source)
    │   ├── SourceRateLimitError    (retry_after: float)
    │   └── SourceNotFoundError
    ├── SessionAuthError            (attempts: int)
    ├── ScrapeError                 (browser-based source)
    │   ├── ChallengeDetectedError
    │   ├── ProfileEvaluationError
    │   └── ScrapeRetryExhaustedError (attempts: int, last_error)
    └── AggregationError
"""

from __future__ import annotations


class PortfolioPipelineError(Exception):
    """Base class for all portfolio pipeline exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class JobValidationError(PortfolioPipelineError):
    """Raised when a job message or dispatch request is incomplete.

    Validation errors are fatal for the job: it moves straight to
    ``failed`` and is never retried.

    Args:
        message: Human-readable description of the problem.
        missing_fields: Names of the absent fields, if any.
    """

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


# ---------------------------------------------------------------------------
# API-based source
# ---------------------------------------------------------------------------


class SourceFetchError(PortfolioPipelineError):
    """Raised when the API-based extractor cannot fetch or parse a profile.

    Args:
        message: Human-readable description of the failure.
        source: Source identifier (``"github"``).
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class SourceRateLimitError(SourceFetchError):
    """Raised when the upstream API reports an exhausted rate limit.

    Args:
        message: Human-readable description of the rate limit.
        retry_after: Seconds until the limit resets. Defaults to 60.
        source: Source identifier.
    """

    def __init__(
        self,
        message: str,
        retry_after: float = 60.0,
        source: str | None = None,
    ) -> None:
        super().__init__(message, source=source)
        self.retry_after = retry_after


class SourceNotFoundError(SourceFetchError):
    """Raised when the referenced account does not exist upstream."""


# ---------------------------------------------------------------------------
# Browser-based source
# ---------------------------------------------------------------------------


class SessionAuthError(PortfolioPipelineError):
    """Raised when the Session Manager exhausts its login attempts.

    Login is session-scoped, not job-scoped: the retry wrapper never
    retries this error, and the worker halts the current job without
    touching downstream coordination state.

    Args:
        message: Description including the last underlying failure.
        attempts: Number of login attempts made.
    """

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ScrapeError(PortfolioPipelineError):
    """Raised for a transient browser extraction failure (timeout, navigation,
    closed page).  Retried by the retry wrapper up to the configured bound."""


class ChallengeDetectedError(ScrapeError):
    """Raised when navigation lands on a checkpoint/authwall page.

    Args:
        message: Human-readable description.
        url: The challenge URL the page was redirected to.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ProfileEvaluationError(ScrapeError):
    """Raised when the in-page extraction script reports an internal error."""


class ScrapeRetryExhaustedError(ScrapeError):
    """Terminal scrape error raised once every extraction attempt has failed.

    Args:
        attempts: Number of attempts made.
        last_error: The exception raised by the final attempt.
        total_backoff: Seconds spent sleeping between attempts.
    """

    def __init__(
        self,
        attempts: int,
        last_error: BaseException | None = None,
        total_backoff: float = 0.0,
    ) -> None:
        super().__init__(
            f"Crawl failed after {attempts} attempt(s): {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
        self.total_backoff = total_backoff


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class AggregationError(PortfolioPipelineError):
    """Raised when a portfolio cannot be generated (no profile, no data)."""
