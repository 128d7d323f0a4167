from __future__ import annotations

import argparse
import logging

from blogsmith.dependencies import get_settings, get_source_import_service
from blogsmith.logging_config import configure_application_logging
from blogsmith.services.http_fetch import HttpFetchError

LOGGER = logging.getLogger("blogsmith.scripts.import")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import the oldest posts from the source blog into the article store.",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Number of posts to import (default: BLOGSMITH_SCRAPE_DEFAULT_COUNT).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_application_logging(settings)
    count = args.count if args.count is not None else settings.scrape_default_count
    if count < 1:
        print("--count must be at least 1")
        return 2

    try:
        summary = get_source_import_service().import_oldest(count)
    except HttpFetchError as exc:
        LOGGER.error("source import failed error=%s", exc)
        print(f"Import failed: {exc}")
        return 1

    print(f"Scraped {summary.total} articles: saved={len(summary.saved)} skipped={len(summary.skipped)}")
    for record in summary.saved:
        print(f"  saved\t{record.article_id}\t{record.title}")
    for title in summary.skipped:
        print(f"  skipped\t{title}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
