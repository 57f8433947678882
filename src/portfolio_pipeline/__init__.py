"""Crawl orchestration for student portfolio generation.

Dispatches GitHub (REST API) and LinkedIn (headless browser) collection jobs
onto separate Celery queues, tracks each to a terminal state, and enqueues a
single portfolio aggregation job once both sources have resolved.
"""

__version__ = "0.1.0"
