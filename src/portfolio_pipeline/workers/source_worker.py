"""Per-source crawl workers.

Both workers follow the same flow (:meth:`SourceWorker.process`):

1. validate the message; a missing field fails the job immediately;
2. move the job to ``processing``;
3. run the extractor; an extraction failure is recorded as an error
   string, never raised;
4. set the profile's completion flag (and data slot, if data exists);
5. move the job to its terminal status;
6. call the coordinator with the profile's owner id.

Anything that escapes step 3 (a login failure, a database error) marks the
job ``failed`` and is re-raised without touching the profile, since no data
decision can be made.

A redelivered job that is already terminal is not re-run, but the
coordinator is called again when this source's flag is set, so a crash
between ``finish_job`` and the join cannot strand the portfolio.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar

import structlog

from portfolio_pipeline.core.exceptions import (
    ChallengeDetectedError,
    JobValidationError,
    ScrapeError,
    SourceFetchError,
)
from portfolio_pipeline.core.schemas.jobs import (
    CrawlJobMessage,
    GithubJobMessage,
    LinkedinJobMessage,
)
from portfolio_pipeline.crawl.coordinator import (
    CoordinationOutcome,
    coordinate_portfolio_generation,
)
from portfolio_pipeline.crawl.state import (
    CrawlStatus,
    SourceType,
    resolve_final_status,
    source_spec,
)
from portfolio_pipeline.crawl.store import CrawlStore
from portfolio_pipeline.sources.github.collector import GitHubCollector
from portfolio_pipeline.sources.linkedin.extractor import LinkedInProfile, ProfileExtractor
from portfolio_pipeline.sources.linkedin.humanize import Sleep, random_delay
from portfolio_pipeline.sources.linkedin.retry import RetryPolicy, run_with_retry
from portfolio_pipeline.sources.linkedin.session import SessionManager

logger = structlog.get_logger(__name__)

Coordinate = Callable[[str], CoordinationOutcome]


@dataclass
class WorkerResult:
    """What one :meth:`SourceWorker.process` call did.

    Attributes:
        job_id: The crawl job processed.
        status: Terminal status written, or the status found when the job
            was skipped.
        errors: Error strings appended to the job.
        user_id: Owner of the profile, when the flag was recorded.
        coordination: Coordinator outcome, when it was called.
        skipped: ``True`` when the job was already terminal (redelivery).
    """

    job_id: str
    status: CrawlStatus
    errors: list[str] = field(default_factory=list)
    user_id: str | None = None
    coordination: CoordinationOutcome | None = None
    skipped: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "errors": self.errors,
            "user_id": self.user_id,
            "coordination": self.coordination.value if self.coordination else None,
            "skipped": self.skipped,
        }


class SourceWorker(ABC):
    """Consumes job messages for one source and drives its extractor.

    Args:
        store: Persistence gateway.
        coordinate: Join/barrier callable, given the owner's user id.
    """

    source: ClassVar[SourceType]
    message_class: ClassVar[type[CrawlJobMessage]]

    def __init__(
        self,
        store: CrawlStore,
        *,
        coordinate: Coordinate | None = None,
    ) -> None:
        self._store = store
        self._coordinate = coordinate or (
            lambda user_id: coordinate_portfolio_generation(user_id, store=store)
        )

    @property
    def label(self) -> str:
        return source_spec(self.source).label

    def error_message(self, exc: BaseException | str) -> str:
        return f"{self.label} Error: {exc}"

    @abstractmethod
    async def collect(self, url: str) -> tuple[dict[str, Any] | None, list[str]]:
        """Run the extractor for *url*.

        Returns:
            ``(data, errors)``: normalized data (``None`` when nothing usable
            was extracted) and recoverable error strings.
        """

    async def process(self, payload: dict[str, Any]) -> WorkerResult:
        """Process one job message to a terminal state.

        Raises:
            JobValidationError: A required message field is missing.
        """
        message = self.message_class.model_validate(payload)
        missing = message.missing_fields()
        if missing:
            reason = f"Missing job fields: {', '.join(missing)}"
            logger.error("worker: invalid job message", source=self.source.value, missing=missing)
            if message.crawl_job_id:
                self._store.fail_job(message.crawl_job_id, reason)
            raise JobValidationError(reason, missing_fields=missing)

        job_id = str(message.crawl_job_id)
        profile_id = str(message.student_profile_id)
        # Cleared by the task_postrun hook in celery_app.
        structlog.contextvars.bind_contextvars(source=self.source.value, crawl_job_id=job_id)
        log = logger

        if not self._store.mark_job_processing(job_id):
            job = self._store.load_job(job_id)
            current = CrawlStatus(job["status"]) if job else CrawlStatus.FAILED
            if current is not CrawlStatus.PROCESSING:
                log.warning("worker: job not runnable; skipping", status=current.value)
                return self._replay_join(job_id, profile_id, current)
            log.warning("worker: resuming job already in processing")

        log.info("worker: job started", url=message.source_url)
        try:
            data, errors = await self.collect(str(message.source_url))
            user_id = self._store.record_source_result(profile_id, self.source, data)
            status = resolve_final_status(data, errors)
            self._store.finish_job(job_id, status, errors)
        except Exception as exc:
            log.error("worker: job aborted", error=str(exc))
            try:
                self._store.fail_job(job_id, self.error_message(exc))
            except Exception as store_exc:  # noqa: BLE001
                log.warning("worker: could not mark job failed", error=str(store_exc))
            raise

        log.info("worker: job finished", status=status.value, errors=len(errors))
        result = WorkerResult(job_id=job_id, status=status, errors=errors, user_id=user_id)
        if user_id is not None:
            result.coordination = self._coordinate(user_id)
        return result

    def _replay_join(self, job_id: str, profile_id: str, status: CrawlStatus) -> WorkerResult:
        """Re-notify the coordinator for a redelivered, already-terminal job.

        The previous delivery may have died between ``finish_job`` and the
        coordinator call.  The aggregation claim is a compare-and-swap, so
        calling again never enqueues twice.
        """
        result = WorkerResult(job_id=job_id, status=status, skipped=True)
        profile = self._store.load_profile_by_id(profile_id)
        if profile is None or not profile.is_processed(self.source):
            return result
        result.user_id = profile.user_id
        result.coordination = self._coordinate(profile.user_id)
        logger.info("worker: join replayed", outcome=result.coordination.value)
        return result


class GithubWorker(SourceWorker):
    """Consumes the ``github`` queue."""

    source = SourceType.GITHUB
    message_class = GithubJobMessage

    def __init__(
        self,
        store: CrawlStore,
        collector: GitHubCollector,
        *,
        coordinate: Coordinate | None = None,
    ) -> None:
        super().__init__(store, coordinate=coordinate)
        self._collector = collector

    async def collect(self, url: str) -> tuple[dict[str, Any] | None, list[str]]:
        try:
            return await self._collector.fetch_profile(url), []
        except SourceFetchError as exc:
            logger.warning("worker: github fetch failed", url=url, error=str(exc))
            return None, [self.error_message(exc)]
        except Exception as exc:  # noqa: BLE001
            logger.exception("worker: github collector crashed", url=url)
            return None, [self.error_message(exc)]


class LinkedinWorker(SourceWorker):
    """Consumes the ``linkedin`` queue.

    Holds the session lease for the whole navigate-and-extract sequence so
    that two jobs never drive the shared page at once.

    Args:
        store: Persistence gateway.
        sessions: The process's Session Manager.
        extractor: Browser-based profile extractor.
        policy: Retry policy for extraction attempts.
        settings: Application settings (pre-job delay bounds).
        coordinate: Join/barrier callable.
        sleep: Coroutine used for pauses (tests pass a no-op).
    """

    source = SourceType.LINKEDIN
    message_class = LinkedinJobMessage

    def __init__(
        self,
        store: CrawlStore,
        sessions: SessionManager,
        extractor: ProfileExtractor,
        policy: RetryPolicy,
        settings: Any,
        *,
        coordinate: Coordinate | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(store, coordinate=coordinate)
        self._sessions = sessions
        self._extractor = extractor
        self._policy = policy
        self._settings = settings
        self._sleep = sleep

    async def _attempt(self, url: str) -> LinkedInProfile:
        session = await self._sessions.acquire()
        return await self._extractor.extract_profile(session, url)

    async def collect(self, url: str) -> tuple[dict[str, Any] | None, list[str]]:
        await random_delay(
            self._settings.worker_min_delay_ms,
            self._settings.worker_max_delay_ms,
            sleep=self._sleep,
        )
        async with self._sessions.lease():
            try:
                profile = await run_with_retry(
                    lambda: self._attempt(url),
                    self._policy,
                    before_retry=self._sessions.prepare_for_retry,
                    sleep=self._sleep,
                )
            except ChallengeDetectedError as exc:
                logger.warning("worker: linkedin challenge; invalidating session", url=exc.url)
                await self._sessions.invalidate()
                return None, [self.error_message(exc)]
            except ScrapeError as exc:
                return None, [self.error_message(exc)]

        if profile.is_empty():
            return None, [self.error_message("profile extraction returned no data")]
        missing = profile.missing_fields()
        if missing:
            logger.warning("worker: linkedin profile incomplete", missing=missing)
        errors = [f"LinkedIn Warning: missing {name}" for name in missing]
        return profile.to_dict(), errors
