"""Queue Dispatcher: turn a URL submission into queued crawl jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urlparse

from portfolio_pipeline.core.exceptions import JobValidationError
from portfolio_pipeline.core.schemas.jobs import (
    CrawlJobMessage,
    GithubJobMessage,
    LinkedinJobMessage,
)
from portfolio_pipeline.crawl.queues import publish_crawl_job
from portfolio_pipeline.crawl.state import SourceType
from portfolio_pipeline.crawl.store import CrawlStore

logger = logging.getLogger(__name__)

_EXPECTED_HOSTS: dict[SourceType, str] = {
    SourceType.GITHUB: "github.com",
    SourceType.LINKEDIN: "linkedin.com",
}


@dataclass
class DispatchResult:
    """Outcome of a dispatch call.

    Attributes:
        profile_id: The upserted student profile.
        job_ids: Crawl job id per dispatched source.
        task_ids: Celery task id per dispatched source.
    """

    profile_id: str
    job_ids: dict[SourceType, str] = field(default_factory=dict)
    task_ids: dict[SourceType, str] = field(default_factory=dict)


def _clean(url: str | None) -> str | None:
    if url is None:
        return None
    url = url.strip()
    return url or None


def _validate_host(source: SourceType, url: str) -> None:
    candidate = url if "://" in url else f"https://{url}"
    host = (urlparse(candidate).hostname or "").lower()
    expected = _EXPECTED_HOSTS[source]
    if host != expected and not host.endswith("." + expected):
        raise JobValidationError(f"Invalid {source.value} URL: {url}")


def _build_message(source: SourceType, profile_id: str, job_id: str, url: str) -> CrawlJobMessage:
    if source is SourceType.GITHUB:
        return GithubJobMessage(student_profile_id=profile_id, crawl_job_id=job_id, github_url=url)
    return LinkedinJobMessage(student_profile_id=profile_id, crawl_job_id=job_id, linkedin_url=url)


def dispatch_crawl(
    user_id: str,
    github_url: str | None = None,
    linkedin_url: str | None = None,
    *,
    store: CrawlStore | None = None,
    publish: Callable[[SourceType, CrawlJobMessage], str] = publish_crawl_job,
) -> DispatchResult:
    """Upsert the user's profile URLs and queue one crawl job per URL.

    Args:
        user_id: Owner of the submission.
        github_url: GitHub profile URL, or ``None``/empty to skip.
        linkedin_url: LinkedIn profile URL, or ``None``/empty to skip.
        store: Persistence gateway.
        publish: Publishes a job message onto the queue for its source.

    Raises:
        JobValidationError: If both URLs are empty or a URL points at the
            wrong host.  Nothing is written in that case.
    """
    store = store or CrawlStore()
    requested = {
        SourceType.GITHUB: _clean(github_url),
        SourceType.LINKEDIN: _clean(linkedin_url),
    }
    requested = {source: url for source, url in requested.items() if url}
    if not requested:
        raise JobValidationError(
            "At least one of githubUrl or linkedinUrl is required",
            missing_fields=["githubUrl", "linkedinUrl"],
        )
    for source, url in requested.items():
        _validate_host(source, url)

    profile_id = store.upsert_profile_urls(
        user_id,
        github_url=requested.get(SourceType.GITHUB),
        linkedin_url=requested.get(SourceType.LINKEDIN),
    )
    result = DispatchResult(profile_id=profile_id)

    for source, url in requested.items():
        job_id = store.create_crawl_job(profile_id, source, url)
        result.job_ids[source] = job_id
        message = _build_message(source, profile_id, job_id, url)
        try:
            task_id = publish(source, message)
        except Exception as exc:
            store.fail_job(job_id, f"Failed to enqueue {source.value} job: {exc}")
            logger.error("dispatcher: publish failed for %s job %s: %s", source.value, job_id, exc)
            raise
        result.task_ids[source] = task_id
        store.set_celery_task_id(job_id, task_id)

    logger.info(
        "dispatcher: user %s queued %s",
        user_id,
        ", ".join(source.value for source in result.job_ids),
    )
    return result
