"""Crawl Job Store, Student Profile Store and Portfolio upserts.

Every mutation is a targeted ``UPDATE``/``INSERT ... ON CONFLICT`` issued
through a synchronous SQLAlchemy session, never a read-modify-write of a
whole row:

- ``raw_data`` slots are written with ``jsonb_set`` so the GitHub and
  LinkedIn workers never clobber each other's output.
- ``error_messages`` is appended with ``||``.
- ``start_time`` / ``completion_time`` use ``COALESCE`` so they are stamped
  once.
- Job state-machine guards live in the ``WHERE`` clause; a forbidden
  transition updates zero rows and the method returns ``False``.
"""

from __future__ import annotations

import json
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import bindparam, text

from portfolio_pipeline.crawl.state import (
    CrawlStatus,
    PortfolioStatus,
    SourceType,
    allowed_predecessors,
    source_spec,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Any]]


def _default_session_factory() -> AbstractContextManager[Any]:
    from portfolio_pipeline.core.database import get_sync_session  # noqa: PLC0415

    return get_sync_session()


def _to_json(value: Any) -> str:
    return json.dumps(value, default=str)


@dataclass
class ProfileSnapshot:
    """Point-in-time read of a ``student_profiles`` row."""

    id: str
    user_id: str
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    raw_data: dict[str, Any] = field(default_factory=dict)
    github_processed: bool = False
    linkedin_processed: bool = False
    aggregation_triggered: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ProfileSnapshot":
        raw = row.get("raw_data") or {}
        if isinstance(raw, str):
            raw = json.loads(raw)
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            github_url=row.get("github_url"),
            linkedin_url=row.get("linkedin_url"),
            raw_data=raw,
            github_processed=bool(row.get("github_processed")),
            linkedin_processed=bool(row.get("linkedin_processed")),
            aggregation_triggered=bool(row.get("aggregation_triggered")),
        )

    def is_processed(self, source: SourceType | str) -> bool:
        return bool(getattr(self, source_spec(source).flag_column))

    def source_data(self, source: SourceType | str) -> dict[str, Any]:
        return self.raw_data.get(source_spec(source).raw_data_key) or {}

    @property
    def both_processed(self) -> bool:
        return self.github_processed and self.linkedin_processed

    @property
    def has_any_data(self) -> bool:
        return any(self.source_data(source) for source in SourceType)


_PROFILE_COLUMNS = """
    id, user_id, github_url, linkedin_url, raw_data,
    github_processed, linkedin_processed, aggregation_triggered
"""


class CrawlStore:
    """Synchronous persistence gateway used by the dispatcher, workers and
    coordinator.

    Args:
        session_factory: Zero-argument callable returning a context manager
            that yields a SQLAlchemy ``Session``.  Defaults to
            :func:`portfolio_pipeline.core.database.get_sync_session`,
            imported lazily so that importing this module never builds an
            engine.
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory or _default_session_factory

    # ------------------------------------------------------------------
    # Student profiles
    # ------------------------------------------------------------------

    def load_profile(self, user_id: str) -> ProfileSnapshot | None:
        with self._session_factory() as session:
            row = session.execute(
                text(f"SELECT {_PROFILE_COLUMNS} FROM student_profiles WHERE user_id = :user_id"),
                {"user_id": user_id},
            ).fetchone()
        if row is None:
            return None
        return ProfileSnapshot.from_row(dict(row._mapping))

    def load_profile_by_id(self, profile_id: str) -> ProfileSnapshot | None:
        with self._session_factory() as session:
            row = session.execute(
                text(f"SELECT {_PROFILE_COLUMNS} FROM student_profiles WHERE id = :profile_id"),
                {"profile_id": profile_id},
            ).fetchone()
        if row is None:
            return None
        return ProfileSnapshot.from_row(dict(row._mapping))

    def ensure_profile(self, user_id: str) -> ProfileSnapshot:
        """Return the user's profile, creating an empty one on first access."""
        with self._session_factory() as session:
            session.execute(
                text(
                    """
                    INSERT INTO student_profiles (user_id)
                    VALUES (:user_id)
                    ON CONFLICT (user_id) DO NOTHING
                    """
                ),
                {"user_id": user_id},
            )
            row = session.execute(
                text(f"SELECT {_PROFILE_COLUMNS} FROM student_profiles WHERE user_id = :user_id"),
                {"user_id": user_id},
            ).fetchone()
            session.commit()
        return ProfileSnapshot.from_row(dict(row._mapping))

    def upsert_profile_urls(
        self,
        user_id: str,
        github_url: str | None = None,
        linkedin_url: str | None = None,
    ) -> str:
        """Create or update the profile's source URLs and return its id.

        ``None`` leaves the stored URL untouched.  Completion flags and raw
        data are never modified here.
        """
        with self._session_factory() as session:
            profile_id = session.execute(
                text(
                    """
                    INSERT INTO student_profiles (user_id, github_url, linkedin_url)
                    VALUES (:user_id, :github_url, :linkedin_url)
                    ON CONFLICT (user_id) DO UPDATE SET
                        github_url = COALESCE(EXCLUDED.github_url, student_profiles.github_url),
                        linkedin_url = COALESCE(EXCLUDED.linkedin_url, student_profiles.linkedin_url),
                        updated_at = NOW()
                    RETURNING id
                    """
                ),
                {
                    "user_id": user_id,
                    "github_url": github_url,
                    "linkedin_url": linkedin_url,
                },
            ).scalar_one()
            session.commit()
        return str(profile_id)

    def record_source_result(
        self,
        profile_id: str,
        source: SourceType | str,
        data: dict[str, Any] | None,
    ) -> str | None:
        """Set the source's completion flag and, if present, its data slot.

        The flag is set regardless of *data* so the coordinator always
        observes a terminal event.  Only this source's flag and slot are
        touched.

        Returns:
            The owning ``user_id``, or ``None`` if the profile does not exist.
        """
        spec = source_spec(source)
        assignments = [f"{spec.flag_column} = true", "updated_at = NOW()"]
        params: dict[str, Any] = {"profile_id": profile_id}
        if data:
            assignments.append(
                "raw_data = jsonb_set(raw_data, ARRAY[:slot], CAST(:data AS jsonb), true)"
            )
            params["slot"] = spec.raw_data_key
            params["data"] = _to_json(data)

        with self._session_factory() as session:
            user_id = session.execute(
                text(
                    f"UPDATE student_profiles SET {', '.join(assignments)} "
                    "WHERE id = :profile_id RETURNING user_id"
                ),
                params,
            ).scalar_one_or_none()
            session.commit()
        if user_id is None:
            logger.warning(
                "store: profile %s not found while recording %s result",
                profile_id,
                spec.label,
            )
            return None
        return str(user_id)

    def claim_aggregation(self, user_id: str) -> bool:
        """Atomically flip ``aggregation_triggered`` false -> true.

        Returns ``True`` only for the single caller whose ``UPDATE`` matched.
        """
        with self._session_factory() as session:
            claimed = session.execute(
                text(
                    """
                    UPDATE student_profiles
                    SET aggregation_triggered = true, updated_at = NOW()
                    WHERE user_id = :user_id AND aggregation_triggered = false
                    RETURNING id
                    """
                ),
                {"user_id": user_id},
            ).fetchone()
            session.commit()
        return claimed is not None

    def release_aggregation(self, user_id: str) -> None:
        """Undo a claim whose aggregation job could not be published."""
        with self._session_factory() as session:
            session.execute(
                text(
                    """
                    UPDATE student_profiles
                    SET aggregation_triggered = false, updated_at = NOW()
                    WHERE user_id = :user_id
                    """
                ),
                {"user_id": user_id},
            )
            session.commit()

    # ------------------------------------------------------------------
    # Crawl jobs
    # ------------------------------------------------------------------

    def create_crawl_job(
        self,
        profile_id: str,
        source: SourceType | str,
        source_url: str,
    ) -> str:
        """Insert a new job in ``queued`` and return its id."""
        with self._session_factory() as session:
            job_id = session.execute(
                text(
                    """
                    INSERT INTO crawl_jobs (student_profile_id, source_type, source_url, status)
                    VALUES (:profile_id, :source_type, :source_url, :status)
                    RETURNING id
                    """
                ),
                {
                    "profile_id": profile_id,
                    "source_type": SourceType(source).value,
                    "source_url": source_url,
                    "status": CrawlStatus.QUEUED.value,
                },
            ).scalar_one()
            session.commit()
        return str(job_id)

    def load_job(self, job_id: str) -> dict[str, Any] | None:
        with self._session_factory() as session:
            row = session.execute(
                text(
                    """
                    SELECT id, student_profile_id, source_type, source_url, status,
                           error_messages, start_time, completion_time, celery_task_id
                    FROM crawl_jobs
                    WHERE id = :job_id
                    """
                ),
                {"job_id": job_id},
            ).fetchone()
        if row is None:
            return None
        return dict(row._mapping)

    def set_celery_task_id(self, job_id: str, task_id: str) -> None:
        """Best-effort bookkeeping write; failures are logged, not raised."""
        try:
            with self._session_factory() as session:
                session.execute(
                    text(
                        "UPDATE crawl_jobs SET celery_task_id = :task_id, "
                        "updated_at = NOW() WHERE id = :job_id"
                    ),
                    {"job_id": job_id, "task_id": task_id},
                )
                session.commit()
        except Exception as exc:  # noqa: BLE001
            logger.warning("store: failed to set celery_task_id on job %s: %s", job_id, exc)

    def mark_job_processing(self, job_id: str) -> bool:
        """Move a job to ``processing`` and stamp ``start_time`` once."""
        return self._transition(job_id, CrawlStatus.PROCESSING, stamp="start_time")

    def finish_job(
        self,
        job_id: str,
        status: CrawlStatus | str,
        errors: Iterable[str] = (),
    ) -> bool:
        """Move a job to a terminal status, appending *errors*.

        Stamps ``completion_time`` once.  Returns ``False`` if the job was
        already terminal (or missing), in which case nothing is written.
        """
        status = CrawlStatus(status)
        if not status.is_terminal:
            raise ValueError(f"{status.value!r} is not a terminal status")
        return self._transition(
            job_id,
            status,
            stamp="completion_time",
            errors=list(errors),
        )

    def fail_job(self, job_id: str, message: str) -> bool:
        return self.finish_job(job_id, CrawlStatus.FAILED, [message])

    def _transition(
        self,
        job_id: str,
        target: CrawlStatus,
        *,
        stamp: str,
        errors: list[str] | None = None,
    ) -> bool:
        assignments = [
            "status = :target",
            f"{stamp} = COALESCE({stamp}, NOW())",
            "updated_at = NOW()",
        ]
        params: dict[str, Any] = {
            "job_id": job_id,
            "target": target.value,
            "predecessors": allowed_predecessors(target),
        }
        if errors:
            assignments.append("error_messages = error_messages || CAST(:errors AS jsonb)")
            params["errors"] = _to_json(errors)

        stmt = text(
            f"UPDATE crawl_jobs SET {', '.join(assignments)} "
            "WHERE id = :job_id AND status IN :predecessors RETURNING id"
        ).bindparams(bindparam("predecessors", expanding=True))

        with self._session_factory() as session:
            updated = session.execute(stmt, params).fetchone()
            session.commit()
        if updated is None:
            logger.warning(
                "store: job %s not moved to %s (missing or not in %s)",
                job_id,
                target.value,
                params["predecessors"],
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Portfolios
    # ------------------------------------------------------------------

    def upsert_portfolio_status(
        self,
        user_id: str,
        status: PortfolioStatus | str,
        error: str | None = None,
    ) -> None:
        """Create or update the portfolio's ``status``/``error`` only."""
        with self._session_factory() as session:
            session.execute(
                text(
                    """
                    INSERT INTO portfolios (user_id, status, error)
                    VALUES (:user_id, :status, :error)
                    ON CONFLICT (user_id) DO UPDATE SET
                        status = EXCLUDED.status,
                        error = EXCLUDED.error,
                        updated_at = NOW()
                    """
                ),
                {
                    "user_id": user_id,
                    "status": PortfolioStatus(status).value,
                    "error": error,
                },
            )
            session.commit()

    def save_portfolio(self, user_id: str, data: dict[str, Any]) -> None:
        """Store aggregation output and mark the portfolio ``completed``."""
        with self._session_factory() as session:
            session.execute(
                text(
                    """
                    INSERT INTO portfolios (user_id, status, data, error, last_generated)
                    VALUES (:user_id, :status, CAST(:data AS jsonb), NULL, NOW())
                    ON CONFLICT (user_id) DO UPDATE SET
                        status = EXCLUDED.status,
                        data = EXCLUDED.data,
                        error = NULL,
                        last_generated = NOW(),
                        updated_at = NOW()
                    """
                ),
                {
                    "user_id": user_id,
                    "status": PortfolioStatus.COMPLETED.value,
                    "data": _to_json(data),
                },
            )
            session.commit()
