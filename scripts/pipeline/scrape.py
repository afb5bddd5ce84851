#!/usr/bin/env python3
"""Stage 2: Scrape every discovered thread with its full reply tree.

Reads discovered_urls.jsonl, fetches each thread not yet in reddit_data.jsonl
(expanding every "load more comments" stub), flattens the reply tree and
appends one ThreadRecord per thread.

Usage:
    python scripts/pipeline/scrape.py [--data-dir .]

Requires env vars: REDDIT_CLIENT_ID, REDDIT_CLIENT_SECRET, REDDIT_USER_AGENT
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from versus.config import load_dotenv, load_settings

load_dotenv()

from versus.errors import PreconditionError
from versus.reddit import RedditSource, get_reddit_client
from versus.scraping import run_scrape
from versus.storage import JsonlStore
from versus.utils.logging_config import setup_logging

REQUIRED_ENV_VARS = ["REDDIT_CLIENT_ID", "REDDIT_CLIENT_SECRET", "REDDIT_USER_AGENT"]


async def scrape(settings) -> int:
    discovered = JsonlStore(settings.discovered_path)
    threads = JsonlStore(settings.threads_path)

    reddit = await get_reddit_client()
    source = RedditSource(reddit)
    try:
        stats = await run_scrape(source, discovered, threads, delay=settings.request_delay)
    finally:
        await source.close()

    print(f"\nScrape complete in {stats.elapsed_seconds:.1f}s")
    print(f"  References:      {stats.total_references}")
    print(f"  Threads scraped: {stats.scraped}")
    print(f"  Already scraped: {stats.skipped}")
    print(f"  Comments kept:   {stats.comments}")
    if stats.error_count:
        print(f"  Errors: {stats.error_count} {stats.errors.by_type()}")
    return stats.error_count


def main():
    parser = argparse.ArgumentParser(
        description="Stage 2: Scrape discovered threads and their replies"
    )
    parser.add_argument("--data-dir", default=None, help="Directory holding the JSONL files (default: $VERSUS_DATA_DIR or .)")
    args = parser.parse_args()

    missing = [v for v in REQUIRED_ENV_VARS if not os.environ.get(v)]
    if missing:
        print(f"Error: Missing environment variables: {', '.join(missing)}")
        print("Set them in your .env file or export them in your shell.")
        sys.exit(1)

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if args.data_dir:
        settings.data_dir = Path(args.data_dir)

    if not settings.discovered_path.exists():
        print(f"Error: Input file not found: {settings.discovered_path}")
        print("Run discover.py first to create it.")
        sys.exit(1)

    setup_logging(log_dir=str(settings.log_dir), log_filename="pipeline.log")
    try:
        asyncio.run(scrape(settings))
    except PreconditionError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
