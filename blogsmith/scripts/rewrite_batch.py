"""
Run one rewrite batch over the pending articles.

Exits 0 once the batch completes, even when individual articles failed;
exits 1 only when the batch cannot start (bad configuration or an
unreachable store).
"""

from __future__ import annotations

import argparse
import logging
import sqlite3

from blogsmith.config import require_llm_credentials
from blogsmith.dependencies import build_rewrite_pipeline, get_settings
from blogsmith.logging_config import configure_application_logging
from blogsmith.services.http_fetch import HttpFetchError
from blogsmith.services.rewrite_pipeline import BatchReport

LOGGER = logging.getLogger("blogsmith.scripts.rewrite")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rewrite pending blog articles.")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum articles to process (default: BLOGSMITH_REWRITE_BATCH_SIZE).",
    )
    parser.add_argument(
        "--via-api",
        action="store_true",
        help="Read and publish articles through BLOGSMITH_API_BASE_URL instead of the local database.",
    )
    return parser.parse_args(argv)


def _print_report(report: BatchReport) -> None:
    print(f"Batch {report.run_id} finished")
    print(f"  attempted: {report.attempted}")
    print(f"  succeeded: {report.succeeded}")
    print(f"  failed:    {report.failed}")
    for failure in report.failures:
        print(f"  - {failure.title} [{failure.stage.value}]: {failure.error}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_application_logging(settings)
    try:
        require_llm_credentials(settings)
    except ValueError as exc:
        LOGGER.error("rewrite batch not started: %s", exc)
        print(str(exc))
        return 1

    try:
        pipeline = build_rewrite_pipeline(settings, via_api=args.via_api)
        report = pipeline.run_batch(limit=args.limit)
    except (sqlite3.Error, HttpFetchError) as exc:
        LOGGER.error("rewrite batch could not load its queue error=%s", exc, exc_info=True)
        print(f"Rewrite batch could not start: {exc}")
        return 1

    _print_report(report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
