"""Join/barrier between the two source branches.

Each source worker calls :func:`coordinate_portfolio_generation` as its last
action, so the coordinator runs at least twice per submission.  The decision
is made from a fresh read of the profile each time:

- either completion flag still ``false``: ``waiting``, nothing is written;
- both flags ``true`` and no source produced data: the portfolio is upserted
  to ``failed`` and ``failed`` is returned;
- otherwise the caller that wins the compare-and-swap on
  ``aggregation_triggered`` enqueues the aggregation job; every caller gets
  ``queued``.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

import structlog

from portfolio_pipeline.crawl.queues import publish_aggregation_job
from portfolio_pipeline.crawl.state import PortfolioStatus
from portfolio_pipeline.crawl.store import CrawlStore

logger = structlog.get_logger(__name__)

NO_DATA_REASON = "Unable to generate portfolio: No GitHub or LinkedIn data."


class CoordinationOutcome(str, Enum):
    """Result of one coordinator call."""

    WAITING = "waiting"
    FAILED = "failed"
    QUEUED = "queued"


def coordinate_portfolio_generation(
    user_id: str,
    *,
    store: CrawlStore | None = None,
    enqueue: Callable[[str], str] = publish_aggregation_job,
) -> CoordinationOutcome:
    """Decide whether to wait, fail, or enqueue aggregation for *user_id*.

    Args:
        user_id: Owner of the profile whose branches are being joined.
        store: Persistence gateway.  A default :class:`CrawlStore` is built
            when omitted.
        enqueue: Publishes the aggregation job for a user id.

    Returns:
        The :class:`CoordinationOutcome`.  A missing profile counts as
        ``waiting``.
    """
    store = store or CrawlStore()
    log = logger.bind(user_id=user_id)

    profile = store.load_profile(user_id)
    if profile is None:
        log.warning("coordinator: profile not found")
        return CoordinationOutcome.WAITING

    if not profile.both_processed:
        log.info(
            "coordinator: waiting",
            github_processed=profile.github_processed,
            linkedin_processed=profile.linkedin_processed,
        )
        return CoordinationOutcome.WAITING

    if not profile.has_any_data:
        store.upsert_portfolio_status(user_id, PortfolioStatus.FAILED, NO_DATA_REASON)
        log.warning("coordinator: no source produced data; portfolio failed")
        return CoordinationOutcome.FAILED

    if not store.claim_aggregation(user_id):
        log.info("coordinator: aggregation already triggered")
        return CoordinationOutcome.QUEUED

    try:
        task_id = enqueue(user_id)
    except Exception:
        store.release_aggregation(user_id)
        log.exception("coordinator: failed to enqueue aggregation; claim released")
        raise

    log.info("coordinator: aggregation enqueued", task_id=task_id)
    return CoordinationOutcome.QUEUED
