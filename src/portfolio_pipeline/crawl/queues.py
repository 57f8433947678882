"""Publishing helpers for the three job queues.

Messages are published by task name with ``celery_app.send_task`` so that
callers never import task modules (and their browser/HTTP dependencies).
"""

from __future__ import annotations

import logging

from portfolio_pipeline.core.schemas.jobs import AggregationJobMessage, CrawlJobMessage
from portfolio_pipeline.crawl.state import SourceType, source_spec

logger = logging.getLogger(__name__)

PORTFOLIO_QUEUE = "portfolio"
AGGREGATION_TASK_NAME = "portfolio_pipeline.workers.portfolio_tasks.generate_portfolio_task"


def _celery_app():
    from portfolio_pipeline.workers.celery_app import celery_app  # noqa: PLC0415

    return celery_app


def publish_crawl_job(source: SourceType | str, message: CrawlJobMessage) -> str:
    """Publish one crawl job onto its source's queue.

    Returns:
        The Celery task id.
    """
    spec = source_spec(source)
    result = _celery_app().send_task(
        spec.task_name,
        kwargs={"message": message.to_payload()},
        queue=spec.queue,
    )
    logger.info(
        "queues: published %s job %s as task %s",
        spec.source.value,
        message.crawl_job_id,
        result.id,
    )
    return str(result.id)


def publish_aggregation_job(user_id: str) -> str:
    """Publish one aggregation job onto the ``portfolio`` queue."""
    message = AggregationJobMessage(user_id=user_id)
    result = _celery_app().send_task(
        AGGREGATION_TASK_NAME,
        kwargs={"message": message.model_dump(by_alias=True)},
        queue=PORTFOLIO_QUEUE,
    )
    logger.info("queues: published aggregation for user %s as task %s", user_id, result.id)
    return str(result.id)
