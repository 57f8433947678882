"""Celery application for the portfolio pipeline.

Three queues, each consumed by its own worker pool::

    celery -A portfolio_pipeline.workers.celery_app worker -Q github --loglevel=info
    celery -A portfolio_pipeline.workers.celery_app worker -Q linkedin --concurrency=1 --loglevel=info
    celery -A portfolio_pipeline.workers.celery_app worker -Q portfolio --loglevel=info

The LinkedIn pool should run with ``--concurrency=1``: every process holds
its own logged-in browser, and each extra process is one more concurrent
login against the same account.

Usage (within application code)::

    from portfolio_pipeline.workers.celery_app import celery_app

    celery_app.send_task(
        "portfolio_pipeline.workers.crawl_tasks.crawl_github_task",
        kwargs={"message": {...}},
        queue="github",
    )
"""

from __future__ import annotations

import logging

import structlog
from celery import Celery
from celery.signals import (
    setup_logging,
    task_postrun,
    task_prerun,
    worker_process_init,
    worker_process_shutdown,
)
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

load_dotenv()

from portfolio_pipeline.config.settings import get_settings  # noqa: E402
from portfolio_pipeline.crawl.queues import AGGREGATION_TASK_NAME, PORTFOLIO_QUEUE  # noqa: E402
from portfolio_pipeline.crawl.state import SOURCES  # noqa: E402

settings = get_settings()

#: The global Celery application instance.
celery_app = Celery(
    "portfolio_pipeline",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "portfolio_pipeline.workers.crawl_tasks",
        "portfolio_pipeline.workers.portfolio_tasks",
    ],
)

celery_app.conf.update(
    # JSON only: messages must stay inspectable and pickle-free.
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Acknowledge after the task finishes so a crashed worker's job is
    # redelivered rather than lost.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86_400,
    task_soft_time_limit=1_800,
    task_time_limit=2_400,
    task_default_queue=PORTFOLIO_QUEUE,
    task_routes={
        **{spec.task_name: {"queue": spec.queue} for spec in SOURCES.values()},
        AGGREGATION_TASK_NAME: {"queue": PORTFOLIO_QUEUE},
    },
)


# ---------------------------------------------------------------------------
# Logging - replace Celery's own handlers with the structlog configuration
# ---------------------------------------------------------------------------
@setup_logging.connect
def _configure_logging(**kwargs: object) -> None:  # noqa: ARG001
    from portfolio_pipeline.core.logging_config import configure_logging  # noqa: PLC0415

    configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# Per-process runtime: engines, event loop, Session Manager
# ---------------------------------------------------------------------------
@worker_process_init.connect
def _init_worker_process(**kwargs: object) -> None:  # noqa: ARG001
    """Dispose inherited DB connections and build this process's runtime.

    Connections opened in the parent cannot be shared across ``fork()``.
    The runtime (and with it the Session Manager) is built per child so
    that every browser belongs to exactly one process.
    """
    from portfolio_pipeline.core import database as _db  # noqa: PLC0415
    from portfolio_pipeline.workers.runtime import init_runtime  # noqa: PLC0415

    _db._sync_engine.dispose(close=False)
    init_runtime(settings)


@worker_process_shutdown.connect
def _shutdown_worker_process(**kwargs: object) -> None:  # noqa: ARG001
    from portfolio_pipeline.workers.runtime import shutdown_runtime  # noqa: PLC0415

    shutdown_runtime()


# ---------------------------------------------------------------------------
# Task id propagation into log records
# ---------------------------------------------------------------------------
@task_prerun.connect
def _bind_task_id(task_id: str | None = None, **kwargs: object) -> None:  # noqa: ARG001
    from portfolio_pipeline.core.logging_config import task_id_var  # noqa: PLC0415

    structlog.contextvars.clear_contextvars()
    task_id_var.set(task_id)


@task_postrun.connect
def _clear_task_id(**kwargs: object) -> None:  # noqa: ARG001
    from portfolio_pipeline.core.logging_config import task_id_var  # noqa: PLC0415

    task_id_var.set(None)
    structlog.contextvars.clear_contextvars()
