"""Unit tests for CrawlStore.

The SQLAlchemy session is a MagicMock; tests assert on the SQL fragments and
bind parameters sent to it, and on how ``RETURNING`` results are interpreted.
No live PostgreSQL is required.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from portfolio_pipeline.crawl.state import CrawlStatus, PortfolioStatus, SourceType
from portfolio_pipeline.crawl.store import CrawlStore, ProfileSnapshot


def _row(**mapping) -> MagicMock:
    row = MagicMock()
    row._mapping = mapping
    return row


def _profile_row(**overrides) -> MagicMock:
    mapping = {
        "id": "p-1",
        "user_id": "u-1",
        "github_url": "https://github.com/octocat",
        "linkedin_url": None,
        "raw_data": {"github": {}, "linkedin": {}},
        "github_processed": False,
        "linkedin_processed": False,
        "aggregation_triggered": False,
    }
    mapping.update(overrides)
    return _row(**mapping)


# ---------------------------------------------------------------------------
# ProfileSnapshot
# ---------------------------------------------------------------------------


class TestProfileSnapshot:
    def test_from_row_decodes_json_text(self) -> None:
        snapshot = ProfileSnapshot.from_row({
            "id": "p-1",
            "user_id": "u-1",
            "raw_data": json.dumps({"github": {"username": "octocat"}, "linkedin": {}}),
            "github_processed": True,
        })

        assert snapshot.source_data("github") == {"username": "octocat"}
        assert snapshot.source_data(SourceType.LINKEDIN) == {}
        assert snapshot.is_processed("github")
        assert not snapshot.both_processed
        assert snapshot.has_any_data

    def test_empty_slots_have_no_data(self) -> None:
        snapshot = ProfileSnapshot(id="p-1", user_id="u-1", raw_data={"github": {}, "linkedin": {}})

        assert not snapshot.has_any_data


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_load_profile_returns_none_when_missing(
        self, store: CrawlStore, db_session: MagicMock
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = None

        assert store.load_profile("u-404") is None

    def test_load_profile_maps_row(self, store: CrawlStore, db_session: MagicMock) -> None:
        db_session.execute.return_value.fetchone.return_value = _profile_row(
            github_processed=True, linkedin_processed=True
        )

        profile = store.load_profile("u-1")

        assert profile is not None
        assert profile.id == "p-1"
        assert profile.both_processed

    def test_load_profile_by_id_filters_on_primary_key(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = _profile_row(github_processed=True)

        profile = store.load_profile_by_id("p-1")

        sql, params = executed_sql()[0]
        assert "WHERE id = :profile_id" in sql
        assert params == {"profile_id": "p-1"}
        assert profile is not None and profile.is_processed("github")

    def test_ensure_profile_inserts_then_reads(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = _profile_row(github_url=None)

        profile = store.ensure_profile("u-1")

        insert_sql, _ = executed_sql()[0]
        assert "ON CONFLICT (user_id) DO NOTHING" in insert_sql
        assert profile.user_id == "u-1"
        assert not profile.github_processed and not profile.linkedin_processed
        db_session.commit.assert_called_once()

    def test_upsert_urls_keeps_existing_values_when_none(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.scalar_one.return_value = "p-1"

        profile_id = store.upsert_profile_urls("u-1", github_url="https://github.com/octocat")

        sql, params = executed_sql()[0]
        assert profile_id == "p-1"
        assert "ON CONFLICT (user_id) DO UPDATE" in sql
        assert "COALESCE(EXCLUDED.github_url, student_profiles.github_url)" in sql
        assert "github_processed" not in sql
        assert params["linkedin_url"] is None
        db_session.commit.assert_called_once()

    def test_record_result_with_data_sets_flag_and_slot(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.scalar_one_or_none.return_value = "u-1"

        user_id = store.record_source_result("p-1", "linkedin", {"name": "Ada"})

        sql, params = executed_sql()[0]
        assert user_id == "u-1"
        assert "linkedin_processed = true" in sql
        assert "github_processed" not in sql
        assert "jsonb_set(raw_data, ARRAY[:slot]" in sql
        assert params["slot"] == "linkedin"
        assert json.loads(params["data"]) == {"name": "Ada"}

    def test_record_result_without_data_only_sets_flag(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.scalar_one_or_none.return_value = "u-1"

        store.record_source_result("p-1", "github", None)

        sql, params = executed_sql()[0]
        assert "github_processed = true" in sql
        assert "raw_data" not in sql
        assert "data" not in params

    def test_record_result_missing_profile_returns_none(
        self, store: CrawlStore, db_session: MagicMock
    ) -> None:
        db_session.execute.return_value.scalar_one_or_none.return_value = None

        assert store.record_source_result("p-404", "github", {"username": "x"}) is None

    def test_claim_aggregation_is_compare_and_swap(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.fetchone.side_effect = [_row(id="p-1"), None]

        assert store.claim_aggregation("u-1") is True
        assert store.claim_aggregation("u-1") is False
        sql, _ = executed_sql()[0]
        assert "aggregation_triggered = false" in sql.split("WHERE", 1)[1]


# ---------------------------------------------------------------------------
# Crawl jobs
# ---------------------------------------------------------------------------


class TestJobs:
    def test_create_job_inserts_queued(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.scalar_one.return_value = "j-1"

        job_id = store.create_crawl_job("p-1", SourceType.GITHUB, "https://github.com/octocat")

        _, params = executed_sql()[0]
        assert job_id == "j-1"
        assert params["status"] == "queued"
        assert params["source_type"] == "github"

    def test_mark_processing_guards_on_queued(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = _row(id="j-1")

        assert store.mark_job_processing("j-1") is True

        sql, params = executed_sql()[0]
        assert "start_time = COALESCE(start_time, NOW())" in sql
        assert "status IN" in sql
        assert params["target"] == "processing"
        assert params["predecessors"] == ["queued"]

    def test_finish_job_appends_errors_and_stamps_completion(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = _row(id="j-1")

        assert store.finish_job("j-1", CrawlStatus.PARTIAL, ["LinkedIn Warning: missing skills"])

        sql, params = executed_sql()[0]
        assert "completion_time = COALESCE(completion_time, NOW())" in sql
        assert "error_messages = error_messages || CAST(:errors AS jsonb)" in sql
        assert json.loads(params["errors"]) == ["LinkedIn Warning: missing skills"]
        assert params["predecessors"] == ["processing"]

    def test_finish_job_on_terminal_job_returns_false(
        self, store: CrawlStore, db_session: MagicMock
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = None

        assert store.finish_job("j-1", "completed") is False

    def test_finish_job_rejects_non_terminal_status(self, store: CrawlStore) -> None:
        with pytest.raises(ValueError):
            store.finish_job("j-1", CrawlStatus.PROCESSING)

    def test_fail_job_allowed_from_queued(
        self, store: CrawlStore, db_session: MagicMock, executed_sql
    ) -> None:
        db_session.execute.return_value.fetchone.return_value = _row(id="j-1")

        store.fail_job("j-1", "Missing job fields: githubUrl")

        _, params = executed_sql()[0]
        assert sorted(params["predecessors"]) == ["processing", "queued"]
        assert params["target"] == "failed"

    def test_set_celery_task_id_swallows_errors(
        self, store: CrawlStore, db_session: MagicMock
    ) -> None:
        db_session.execute.side_effect = RuntimeError("db down")

        store.set_celery_task_id("j-1", "t-1")


# ---------------------------------------------------------------------------
# Portfolios
# ---------------------------------------------------------------------------


class TestPortfolios:
    def test_upsert_status(self, store: CrawlStore, executed_sql) -> None:
        store.upsert_portfolio_status("u-1", PortfolioStatus.FAILED, "no data")

        sql, params = executed_sql()[0]
        assert "ON CONFLICT (user_id) DO UPDATE" in sql
        assert params == {"user_id": "u-1", "status": "failed", "error": "no data"}

    def test_save_portfolio_marks_completed(self, store: CrawlStore, executed_sql) -> None:
        store.save_portfolio("u-1", {"name": "Ada"})

        sql, params = executed_sql()[0]
        assert "last_generated = NOW()" in sql
        assert params["status"] == "completed"
        assert json.loads(params["data"]) == {"name": "Ada"}
