"""Unit tests for the crawl job state machine and per-source metadata."""

from __future__ import annotations

import pytest

from portfolio_pipeline.crawl.state import (
    SOURCES,
    CrawlStatus,
    SourceType,
    allowed_predecessors,
    resolve_final_status,
    source_spec,
)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("queued", "processing"),
            ("queued", "failed"),
            ("processing", "completed"),
            ("processing", "partial"),
            ("processing", "failed"),
        ],
    )
    def test_forward_edges_allowed(self, current: str, target: str) -> None:
        assert current in allowed_predecessors(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("completed", "processing"),
            ("failed", "completed"),
            ("partial", "failed"),
            ("processing", "queued"),
            ("queued", "completed"),
        ],
    )
    def test_backward_or_skipping_edges_rejected(self, current: str, target: str) -> None:
        assert current not in allowed_predecessors(target)

    def test_terminal_statuses(self) -> None:
        assert CrawlStatus.COMPLETED.is_terminal
        assert CrawlStatus.PARTIAL.is_terminal
        assert CrawlStatus.FAILED.is_terminal
        assert not CrawlStatus.PROCESSING.is_terminal

    def test_allowed_predecessors(self) -> None:
        assert allowed_predecessors(CrawlStatus.PROCESSING) == ["queued"]
        assert sorted(allowed_predecessors("failed")) == ["processing", "queued"]
        assert allowed_predecessors("completed") == ["processing"]


class TestResolveFinalStatus:
    def test_data_without_errors_is_completed(self) -> None:
        assert resolve_final_status({"name": "x"}, []) is CrawlStatus.COMPLETED

    def test_data_with_errors_is_partial(self) -> None:
        assert resolve_final_status({"name": "x"}, ["warn"]) is CrawlStatus.PARTIAL

    def test_no_data_is_failed(self) -> None:
        assert resolve_final_status(None, []) is CrawlStatus.FAILED
        assert resolve_final_status({}, ["GitHub Error: boom"]) is CrawlStatus.FAILED


class TestSources:
    def test_each_source_owns_distinct_columns(self) -> None:
        github = source_spec("github")
        linkedin = source_spec(SourceType.LINKEDIN)

        assert github.flag_column == "github_processed"
        assert linkedin.flag_column == "linkedin_processed"
        assert github.raw_data_key == "github"
        assert linkedin.raw_data_key == "linkedin"
        assert {spec.queue for spec in SOURCES.values()} == {"github", "linkedin"}

    def test_unknown_source_rejected(self) -> None:
        with pytest.raises(ValueError):
            source_spec("twitter")
