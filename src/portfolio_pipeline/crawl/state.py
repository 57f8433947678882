"""Crawl job state machine and per-source metadata.

Crawl jobs only ever move forward::

    queued -> processing -> {completed, partial, failed}

Terminal states are final.  The store enforces these rules in the ``WHERE``
clause of each ``UPDATE`` using :func:`allowed_predecessors`, so a forbidden
transition simply touches zero rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence


class SourceType(str, Enum):
    """Data-collection branch a crawl job belongs to.

    Attributes:
        GITHUB: Stateless REST API fetch.
        LINKEDIN: Stateful, session-bound browser scrape.
    """

    GITHUB = "github"
    LINKEDIN = "linkedin"


class CrawlStatus(str, Enum):
    """Lifecycle state of a crawl job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class PortfolioStatus(str, Enum):
    """Lifecycle state of a generated portfolio."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[CrawlStatus] = frozenset({
    CrawlStatus.COMPLETED,
    CrawlStatus.PARTIAL,
    CrawlStatus.FAILED,
})

ALLOWED_TRANSITIONS: dict[CrawlStatus, frozenset[CrawlStatus]] = {
    CrawlStatus.QUEUED: frozenset({CrawlStatus.PROCESSING, CrawlStatus.FAILED}),
    CrawlStatus.PROCESSING: TERMINAL_STATUSES,
    CrawlStatus.COMPLETED: frozenset(),
    CrawlStatus.PARTIAL: frozenset(),
    CrawlStatus.FAILED: frozenset(),
}
"""Forward edges of the job state machine.

``queued -> failed`` covers jobs rejected before pickup (invalid message,
publish failure).
"""


def allowed_predecessors(target: CrawlStatus | str) -> list[str]:
    """Return the status values from which *target* is reachable in one step."""
    target = CrawlStatus(target)
    return [
        source.value
        for source, targets in ALLOWED_TRANSITIONS.items()
        if target in targets
    ]


def resolve_final_status(
    data: Mapping[str, Any] | None,
    errors: Sequence[str],
) -> CrawlStatus:
    """Compute the terminal status of a job from what the worker collected.

    - data and no errors: ``completed``
    - data and at least one recoverable error: ``partial``
    - no data: ``failed``
    """
    if not data:
        return CrawlStatus.FAILED
    if errors:
        return CrawlStatus.PARTIAL
    return CrawlStatus.COMPLETED


@dataclass(frozen=True)
class SourceSpec:
    """Column and message names owned by one source branch.

    Attributes:
        source: The source type.
        label: Display name used in error strings (``"GitHub Error: ..."``).
        flag_column: Completion flag column on ``student_profiles``.
        raw_data_key: Key of the source's slot inside ``raw_data``.
        url_column: URL column on ``student_profiles``.
        queue: Celery queue the source's jobs are published to.
        task_name: Registered Celery task name consuming that queue.
    """

    source: SourceType
    label: str
    flag_column: str
    raw_data_key: str
    url_column: str
    queue: str
    task_name: str


SOURCES: dict[SourceType, SourceSpec] = {
    SourceType.GITHUB: SourceSpec(
        source=SourceType.GITHUB,
        label="GitHub",
        flag_column="github_processed",
        raw_data_key="github",
        url_column="github_url",
        queue="github",
        task_name="portfolio_pipeline.workers.crawl_tasks.crawl_github_task",
    ),
    SourceType.LINKEDIN: SourceSpec(
        source=SourceType.LINKEDIN,
        label="LinkedIn",
        flag_column="linkedin_processed",
        raw_data_key="linkedin",
        url_column="linkedin_url",
        queue="linkedin",
        task_name="portfolio_pipeline.workers.crawl_tasks.crawl_linkedin_task",
    ),
}


def source_spec(source: SourceType | str) -> SourceSpec:
    return SOURCES[SourceType(source)]
