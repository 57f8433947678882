"""Crawl orchestration: job state, persistence, dispatch and the join barrier."""
