"""Celery task consuming the ``portfolio`` queue."""

from __future__ import annotations

import logging
from typing import Any

from portfolio_pipeline.core.schemas.jobs import AggregationJobMessage
from portfolio_pipeline.portfolio.aggregation import generate_portfolio
from portfolio_pipeline.workers.celery_app import celery_app
from portfolio_pipeline.workers.runtime import get_runtime

logger = logging.getLogger(__name__)


@celery_app.task(
    name="portfolio_pipeline.workers.portfolio_tasks.generate_portfolio_task",
    bind=True,
    acks_late=True,
    max_retries=0,
)
def generate_portfolio_task(self: Any, message: dict[str, Any]) -> dict[str, Any]:
    """Build and store the portfolio for ``message["userId"]``."""
    job = AggregationJobMessage.model_validate(message)
    logger.info("portfolio_tasks: task %s generating portfolio for user %s", self.request.id, job.user_id)
    runtime = get_runtime()
    portfolio = generate_portfolio(job.user_id, runtime.store, runtime.bio_writer)
    return {"user_id": job.user_id, "status": "completed", "projects": len(portfolio["projects"])}
