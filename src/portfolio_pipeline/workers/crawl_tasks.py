"""Celery tasks consuming the ``github`` and ``linkedin`` queues.

Each task hands its message to the matching worker from the process
runtime and runs it on the persistent event loop.  There are no Celery
retries: the GitHub path does not retry, and the LinkedIn path retries
inside :func:`~portfolio_pipeline.sources.linkedin.retry.run_with_retry`.
"""

from __future__ import annotations

import logging
from typing import Any

from portfolio_pipeline.workers.celery_app import celery_app
from portfolio_pipeline.workers.runtime import get_runtime, run_async

logger = logging.getLogger(__name__)


@celery_app.task(
    name="portfolio_pipeline.workers.crawl_tasks.crawl_github_task",
    bind=True,
    acks_late=True,
    max_retries=0,
)
def crawl_github_task(self: Any, message: dict[str, Any]) -> dict[str, Any]:
    """Fetch one GitHub profile and record it on the student profile.

    Args:
        message: ``{studentProfileId, githubUrl, crawlJobId}``.

    Returns:
        Dict with ``job_id``, terminal ``status``, ``errors`` and the
        coordinator outcome.
    """
    logger.info("crawl_tasks: github task %s started for job %s", self.request.id, message.get("crawlJobId"))
    result = run_async(get_runtime().github_worker.process(message))
    return result.as_dict()


@celery_app.task(
    name="portfolio_pipeline.workers.crawl_tasks.crawl_linkedin_task",
    bind=True,
    acks_late=True,
    max_retries=0,
)
def crawl_linkedin_task(self: Any, message: dict[str, Any]) -> dict[str, Any]:
    """Scrape one LinkedIn profile through the process's cached session.

    Args:
        message: ``{studentProfileId, linkedinUrl, crawlJobId}``.

    Returns:
        Dict with ``job_id``, terminal ``status``, ``errors`` and the
        coordinator outcome.
    """
    logger.info("crawl_tasks: linkedin task %s started for job %s", self.request.id, message.get("crawlJobId"))
    result = run_async(get_runtime().linkedin_worker.process(message))
    return result.as_dict()
