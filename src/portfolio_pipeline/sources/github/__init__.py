"""GitHub REST API extractor."""

from portfolio_pipeline.sources.github.collector import GitHubCollector

__all__ = ["GitHubCollector"]
