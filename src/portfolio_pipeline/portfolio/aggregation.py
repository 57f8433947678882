"""Portfolio aggregation step.

Consumes the ``portfolio`` queue.  Reads both raw-data slots of a profile and
builds the denormalized portfolio document::

    {githubUrl, linkedinUrl, name, bio, workExperience, skills, projects,
     achievements}

The biography is delegated to a :class:`BioWriter`.  Text generation is an
external concern; :class:`FallbackBioWriter` produces a deterministic bio
and is also used whenever another writer fails.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from portfolio_pipeline.core.exceptions import AggregationError
from portfolio_pipeline.crawl.state import PortfolioStatus
from portfolio_pipeline.crawl.store import CrawlStore

logger = logging.getLogger(__name__)

MAX_PROJECTS = 20
_PLACEHOLDERS = ("", "N/A")


def _has_value(value: Any) -> bool:
    return isinstance(value, str) and value.strip() not in _PLACEHOLDERS


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------


def extract_work_experience(linkedin: dict[str, Any]) -> list[dict[str, str]]:
    experiences = []
    for exp in linkedin.get("experience") or []:
        experiences.append({
            "title": exp.get("title") or exp.get("position") or "Position",
            "company": exp.get("company") or exp.get("companyName") or "Company",
            "duration": exp.get("period")
            or exp.get("duration")
            or f"{exp.get('startDate') or ''} - {exp.get('endDate') or 'Present'}",
            "description": exp.get("description") or "",
            "location": exp.get("location") or "",
        })
    return experiences


def extract_skills(github: dict[str, Any], linkedin: dict[str, Any]) -> list[str]:
    """Union of GitHub skills, languages and topics plus LinkedIn skills, first-seen order."""
    skills: dict[str, None] = {}
    for skill in github.get("skills") or []:
        skills.setdefault(skill, None)
    for language in github.get("languages") or []:
        skills.setdefault(language, None)
    for repo in github.get("repos") or []:
        for topic in repo.get("topics") or []:
            skills.setdefault(topic, None)
    for skill in linkedin.get("skills") or []:
        name = skill if isinstance(skill, str) else (skill or {}).get("name")
        if name:
            skills.setdefault(name, None)
    return list(skills)


def extract_projects(github: dict[str, Any]) -> list[dict[str, Any]]:
    """Repositories with a real description or language, most-starred first."""
    projects = []
    for repo in github.get("repos") or []:
        has_description = _has_value(repo.get("description"))
        has_language = _has_value(repo.get("language"))
        if not (has_description or has_language):
            continue
        projects.append({
            "name": repo.get("name") or "Untitled Project",
            "description": repo["description"] if has_description else "No description available",
            "url": repo.get("url") or "",
            "stars": repo.get("stars") or 0,
            "forks": repo.get("forks") or 0,
            "language": repo["language"] if has_language else None,
            "topics": repo.get("topics") or [],
        })
    projects.sort(key=lambda project: project["stars"], reverse=True)
    return projects[:MAX_PROJECTS]


def extract_achievements(linkedin: dict[str, Any]) -> list[dict[str, str]]:
    achievements = []
    for cert in linkedin.get("certifications") or []:
        achievements.append({
            "type": "Certification",
            "title": cert.get("name") or cert.get("title") or "Certification",
            "issuer": cert.get("issuer") or cert.get("authority") or "",
            "date": cert.get("date") or cert.get("issueDate") or "",
            "description": cert.get("description") or "",
        })
    for award in linkedin.get("awards") or []:
        achievements.append({
            "type": "Award",
            "title": award.get("title") or award.get("name") or "Award",
            "issuer": award.get("issuer") or "",
            "date": award.get("date") or "",
            "description": award.get("description") or "",
        })
    for edu in linkedin.get("education") or []:
        if edu.get("honors") or edu.get("activities"):
            achievements.append({
                "type": "Education",
                "title": edu.get("degree") or "Academic Achievement",
                "issuer": edu.get("school") or "",
                "date": edu.get("endDate") or edu.get("period") or "",
                "description": edu.get("honors") or edu.get("activities") or "",
            })
    return achievements


# ---------------------------------------------------------------------------
# Bio writers
# ---------------------------------------------------------------------------


class BioWriter(Protocol):
    def write_bio(
        self,
        portfolio: dict[str, Any],
        github: dict[str, Any],
        linkedin: dict[str, Any],
    ) -> str:
        ...


class FallbackBioWriter:
    """Deterministic template bio built from counts and the top three skills."""

    def write_bio(
        self,
        portfolio: dict[str, Any],
        github: dict[str, Any],
        linkedin: dict[str, Any],
    ) -> str:
        skills = portfolio["skills"]
        projects = portfolio["projects"]
        experience = portfolio["workExperience"]

        text = f"skilled in {', '.join(skills[:3])}" if skills else "a passionate developer"
        if projects:
            text += f" with {len(projects)} {'project' if len(projects) == 1 else 'projects'}"
        if experience:
            noun = "professional experience" if len(experience) == 1 else "professional experiences"
            text += f" and {len(experience)} {noun}"
        return (
            f"{portfolio['name']} is a {text}. Passionate about creating innovative "
            "solutions and continuously learning new technologies."
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_portfolio(
    profile_urls: dict[str, Any],
    github: dict[str, Any],
    linkedin: dict[str, Any],
    bio_writer: BioWriter,
) -> dict[str, Any]:
    portfolio: dict[str, Any] = {
        "name": linkedin.get("name") or github.get("name") or github.get("username") or "This student",
        "githubUrl": profile_urls.get("github_url"),
        "linkedinUrl": profile_urls.get("linkedin_url"),
        "bio": "",
        "workExperience": extract_work_experience(linkedin),
        "skills": extract_skills(github, linkedin),
        "projects": extract_projects(github),
        "achievements": extract_achievements(linkedin),
    }
    fallback = FallbackBioWriter()
    try:
        portfolio["bio"] = bio_writer.write_bio(portfolio, github, linkedin)
    except Exception as exc:  # noqa: BLE001
        logger.warning("aggregation: bio writer failed, using fallback: %s", exc)
        portfolio["bio"] = fallback.write_bio(portfolio, github, linkedin)
    if not portfolio["bio"]:
        portfolio["bio"] = fallback.write_bio(portfolio, github, linkedin)
    return portfolio


def generate_portfolio(
    user_id: str,
    store: CrawlStore,
    bio_writer: BioWriter | None = None,
) -> dict[str, Any]:
    """Generate and store the portfolio for *user_id*.

    Portfolio status moves ``generating`` then ``completed``; on failure it
    is set to ``failed`` with the reason and the error is re-raised.

    Raises:
        AggregationError: No profile, or neither source holds data.
    """
    store.upsert_portfolio_status(user_id, PortfolioStatus.GENERATING)
    try:
        profile = store.load_profile(user_id)
        if profile is None:
            raise AggregationError("Profile not found")
        github = profile.source_data("github")
        linkedin = profile.source_data("linkedin")
        if not github and not linkedin:
            raise AggregationError("No crawled data available. Please add GitHub/LinkedIn URLs.")
        portfolio = build_portfolio(
            {"github_url": profile.github_url, "linkedin_url": profile.linkedin_url},
            github,
            linkedin,
            bio_writer or FallbackBioWriter(),
        )
        store.save_portfolio(user_id, portfolio)
    except Exception as exc:
        logger.error("aggregation: portfolio generation failed for user %s: %s", user_id, exc)
        store.upsert_portfolio_status(user_id, PortfolioStatus.FAILED, str(exc))
        raise

    logger.info("aggregation: portfolio generated for user %s", user_id)
    return portfolio
