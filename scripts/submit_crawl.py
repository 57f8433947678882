#!/usr/bin/env python
"""Dispatch a crawl for one user from the shell.

Upserts the user's profile URLs, creates one crawl job per URL and
publishes each onto its queue.  Workers must be running to pick them up.

Usage::

    python scripts/submit_crawl.py USER_ID --github https://github.com/octocat
    python scripts/submit_crawl.py USER_ID --github ... --linkedin https://www.linkedin.com/in/someone

Exit codes:
    0 - Jobs queued.
    1 - Validation error (no URL, wrong host) or dispatch failure.
"""

from __future__ import annotations

import argparse
import os
import sys

# Ensure the src layout is on sys.path when running as a standalone script.
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SRC_DIR = os.path.join(os.path.dirname(_SCRIPT_DIR), "src")
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Queue GitHub/LinkedIn crawl jobs for a user.")
    parser.add_argument("user_id", help="Owner of the student profile")
    parser.add_argument("--github", dest="github_url", default=None, help="GitHub profile URL")
    parser.add_argument("--linkedin", dest="linkedin_url", default=None, help="LinkedIn profile URL")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from portfolio_pipeline.config.settings import get_settings  # noqa: PLC0415
    from portfolio_pipeline.core.exceptions import JobValidationError  # noqa: PLC0415
    from portfolio_pipeline.core.logging_config import configure_logging  # noqa: PLC0415
    from portfolio_pipeline.crawl.dispatcher import dispatch_crawl  # noqa: PLC0415

    configure_logging(get_settings().log_level)
    try:
        result = dispatch_crawl(args.user_id, args.github_url, args.linkedin_url)
    except JobValidationError as exc:
        print(f"[submit_crawl] ERROR: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:  # noqa: BLE001
        print(f"[submit_crawl] ERROR: dispatch failed: {exc}", file=sys.stderr)
        return 1

    print(f"[submit_crawl] Profile {result.profile_id}")
    for source, job_id in result.job_ids.items():
        print(f"  {source.value:<8} job={job_id} task={result.task_ids.get(source)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
