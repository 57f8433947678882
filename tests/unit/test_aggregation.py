"""Unit tests for portfolio aggregation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from portfolio_pipeline.core.exceptions import AggregationError
from portfolio_pipeline.crawl.state import PortfolioStatus
from portfolio_pipeline.crawl.store import ProfileSnapshot
from portfolio_pipeline.portfolio.aggregation import (
    MAX_PROJECTS,
    FallbackBioWriter,
    build_portfolio,
    extract_achievements,
    extract_projects,
    extract_skills,
    extract_work_experience,
    generate_portfolio,
)

GITHUB = {
    "username": "octocat",
    "name": "The Octocat",
    "skills": ["cli", "Python"],
    "languages": ["Python", "Go"],
    "repos": [
        {"name": "small", "description": "Tiny", "language": "Go", "stars": 1, "topics": ["tools"]},
        {"name": "empty", "description": "N/A", "language": None, "stars": 50, "topics": []},
        {"name": "big", "description": "N/A", "language": "Python", "stars": 9, "topics": ["cli"]},
    ],
}
LINKEDIN = {
    "name": "Ada Lovelace",
    "skills": ["Mathematics", "Python"],
    "experience": [{"title": "Analyst", "company": "Engine Co", "period": "1842 - 1843"}],
    "education": [
        {"school": "Home", "degree": "Maths", "honors": "First"},
        {"school": "Elsewhere", "degree": "Music"},
    ],
    "certifications": [{"name": "Engines 101", "issuer": "Babbage"}],
}


class TestExtractors:
    def test_skills_are_deduplicated_union(self) -> None:
        assert extract_skills(GITHUB, LINKEDIN) == ["cli", "Python", "Go", "tools", "Mathematics"]

    def test_projects_filter_placeholders_and_sort_by_stars(self) -> None:
        projects = extract_projects(GITHUB)

        assert [p["name"] for p in projects] == ["big", "small"]
        assert projects[0]["description"] == "No description available"

    def test_projects_capped(self) -> None:
        repos = [{"name": f"r{i}", "description": "d", "stars": i} for i in range(30)]

        assert len(extract_projects({"repos": repos})) == MAX_PROJECTS

    def test_work_experience_shape(self) -> None:
        assert extract_work_experience(LINKEDIN) == [{
            "title": "Analyst",
            "company": "Engine Co",
            "duration": "1842 - 1843",
            "description": "",
            "location": "",
        }]

    def test_achievements_include_certifications_and_honors(self) -> None:
        achievements = extract_achievements(LINKEDIN)

        assert [a["type"] for a in achievements] == ["Certification", "Education"]
        assert achievements[1]["description"] == "First"


class TestBuildPortfolio:
    def test_document_keys_and_fallback_bio(self) -> None:
        portfolio = build_portfolio(
            {"github_url": "https://github.com/octocat", "linkedin_url": None},
            GITHUB,
            LINKEDIN,
            FallbackBioWriter(),
        )

        assert set(portfolio) == {
            "name", "githubUrl", "linkedinUrl", "bio",
            "workExperience", "skills", "projects", "achievements",
        }
        assert portfolio["name"] == "Ada Lovelace"
        assert portfolio["bio"].startswith(
            "Ada Lovelace is a skilled in cli, Python, Go with 2 projects and 1 professional experience."
        )

    def test_failing_bio_writer_falls_back(self) -> None:
        writer = MagicMock()
        writer.write_bio.side_effect = RuntimeError("model offline")

        portfolio = build_portfolio({}, GITHUB, {}, writer)

        assert portfolio["name"] == "The Octocat"
        assert "Passionate about creating innovative solutions" in portfolio["bio"]


class TestGeneratePortfolio:
    def _profile(self, github: dict, linkedin: dict) -> ProfileSnapshot:
        return ProfileSnapshot(
            id="p-1",
            user_id="u-1",
            github_url="https://github.com/octocat",
            raw_data={"github": github, "linkedin": linkedin},
            github_processed=True,
            linkedin_processed=True,
        )

    def test_saves_completed_portfolio(self, mock_store: MagicMock) -> None:
        mock_store.load_profile.return_value = self._profile(GITHUB, {})

        portfolio = generate_portfolio("u-1", mock_store)

        mock_store.upsert_portfolio_status.assert_called_once_with("u-1", PortfolioStatus.GENERATING)
        mock_store.save_portfolio.assert_called_once_with("u-1", portfolio)
        assert portfolio["githubUrl"] == "https://github.com/octocat"

    def test_no_data_marks_failed(self, mock_store: MagicMock) -> None:
        mock_store.load_profile.return_value = self._profile({}, {})

        with pytest.raises(AggregationError, match="No crawled data"):
            generate_portfolio("u-1", mock_store)

        mock_store.upsert_portfolio_status.assert_called_with(
            "u-1",
            PortfolioStatus.FAILED,
            "No crawled data available. Please add GitHub/LinkedIn URLs.",
        )
        mock_store.save_portfolio.assert_not_called()

    def test_missing_profile_marks_failed(self, mock_store: MagicMock) -> None:
        mock_store.load_profile.return_value = None

        with pytest.raises(AggregationError, match="Profile not found"):
            generate_portfolio("u-1", mock_store)
