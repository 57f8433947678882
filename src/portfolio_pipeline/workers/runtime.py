"""Per-process worker runtime.

Celery prefork workers run one task at a time per process.  The LinkedIn
session must outlive individual tasks, so every process keeps one
persistent asyncio event loop (instead of ``asyncio.run()`` per task) and
one :class:`WorkerRuntime` holding the injected Session Manager and
workers.  Both are created at ``worker_process_init`` and torn down at
``worker_process_shutdown`` (see ``workers/celery_app.py``).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine, TypeVar

from portfolio_pipeline.crawl.store import CrawlStore
from portfolio_pipeline.portfolio.aggregation import BioWriter, FallbackBioWriter
from portfolio_pipeline.sources.github.collector import GitHubCollector
from portfolio_pipeline.sources.linkedin.extractor import LinkedInExtractor
from portfolio_pipeline.sources.linkedin.retry import RetryPolicy
from portfolio_pipeline.sources.linkedin.session import SessionManager
from portfolio_pipeline.workers.source_worker import GithubWorker, LinkedinWorker

logger = logging.getLogger(__name__)

T = TypeVar("T")

_loop: asyncio.AbstractEventLoop | None = None
_runtime: "WorkerRuntime | None" = None


def get_event_loop() -> asyncio.AbstractEventLoop:
    """Return this process's persistent event loop, creating it if needed."""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion on the persistent loop."""
    return get_event_loop().run_until_complete(coro)


@dataclass
class WorkerRuntime:
    """Long-lived collaborators shared by every task in a worker process."""

    settings: Any
    store: CrawlStore
    sessions: SessionManager
    github_worker: GithubWorker
    linkedin_worker: LinkedinWorker
    bio_writer: BioWriter

    @classmethod
    def build(cls, settings: Any) -> "WorkerRuntime":
        store = CrawlStore()
        sessions = SessionManager(settings)
        return cls(
            settings=settings,
            store=store,
            sessions=sessions,
            github_worker=GithubWorker(store, GitHubCollector.from_settings(settings)),
            linkedin_worker=LinkedinWorker(
                store,
                sessions,
                LinkedInExtractor(settings),
                RetryPolicy.from_settings(settings),
                settings,
            ),
            bio_writer=FallbackBioWriter(),
        )

    async def aclose(self) -> None:
        if self.settings.keep_browser_open:
            logger.info("runtime: KEEP_BROWSER_OPEN set; leaving LinkedIn session open")
            return
        await self.sessions.close()


def init_runtime(settings: Any = None) -> WorkerRuntime:
    """Build the process runtime.  Called from ``worker_process_init``."""
    global _runtime
    if settings is None:
        from portfolio_pipeline.config.settings import get_settings  # noqa: PLC0415

        settings = get_settings()
    _runtime = WorkerRuntime.build(settings)
    logger.info(
        "runtime: initialised (crawl attempts=%d, login attempts=%d, legacy worker retries=%d)",
        settings.linkedin_crawl_max_attempts,
        settings.linkedin_login_max_attempts,
        settings.worker_max_retries,
    )
    return _runtime


def get_runtime() -> WorkerRuntime:
    """Return the process runtime, building it lazily (solo pool, tests)."""
    if _runtime is None:
        return init_runtime()
    return _runtime


def shutdown_runtime() -> None:
    """Close the runtime and the persistent loop.  Called on process shutdown."""
    global _runtime, _loop
    runtime, _runtime = _runtime, None
    if runtime is not None:
        try:
            run_async(runtime.aclose())
        except Exception as exc:  # noqa: BLE001
            logger.warning("runtime: shutdown failed: %s", exc)
    if _loop is not None and not _loop.is_closed() and not (runtime and runtime.settings.keep_browser_open):
        _loop.close()
        _loop = None
