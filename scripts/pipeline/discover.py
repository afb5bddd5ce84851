#!/usr/bin/env python3
"""Stage 1: Discover threads that mention both tools.

Pages through each configured subreddit's newest posts until the lookback
cutoff and appends every post whose title or body names both Claude Code and
Codex to discovered_urls.jsonl. URLs already in the file are skipped, so the
stage can be re-run at any time.

Usage:
    python scripts/pipeline/discover.py [--subreddits ClaudeCode,codex] [--lookback-days 76] [--data-dir .]

Requires env vars: REDDIT_CLIENT_ID, REDDIT_CLIENT_SECRET, REDDIT_USER_AGENT
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add project root to path so versus.* imports work
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from versus.config import load_dotenv, load_settings

load_dotenv()

from versus.discovery import run_discovery
from versus.models.thread_models import DiscoveredReference
from versus.reddit import RedditSource, get_reddit_client
from versus.storage import JsonlStore
from versus.utils.logging_config import setup_logging

REQUIRED_ENV_VARS = ["REDDIT_CLIENT_ID", "REDDIT_CLIENT_SECRET", "REDDIT_USER_AGENT"]


async def discover(settings) -> int:
    store = JsonlStore(settings.discovered_path)
    keywords = settings.tool_pair.keyword_filter()

    print(f"Discovering in {len(settings.subreddits)} subreddits: {', '.join(settings.subreddits)}")
    print(f"  Lookback: {settings.lookback_days} days")
    print(f"  Keywords: {' AND '.join(keywords.describe())}")

    reddit = await get_reddit_client()
    source = RedditSource(reddit)
    try:
        stats = await run_discovery(
            source,
            settings.subreddits,
            store,
            keywords,
            settings.lookback,
            page_size=settings.page_size,
            delay=settings.request_delay,
        )
    finally:
        await source.close()

    print(f"\nDiscovery complete in {stats.elapsed_seconds:.1f}s")
    for name, sub in stats.per_subreddit.items():
        status = "failed" if sub.failed else ("cutoff" if sub.reached_cutoff else "exhausted")
        print(f"  r/{name}: scanned {sub.scanned}, new matches {sub.matched} ({status})")
    print(f"  New references: {stats.matched}")
    print(f"  Total in {settings.discovered_path}: {JsonlStore(settings.discovered_path, DiscoveredReference.from_record).count()}")
    if stats.error_count:
        print(f"  Errors: {stats.error_count} {stats.errors.by_type()}")
    return stats.error_count


def main():
    parser = argparse.ArgumentParser(
        description="Stage 1: Discover Reddit threads comparing the two tools"
    )
    parser.add_argument("--subreddits", default=None, help="Comma-separated subreddits (default: $VERSUS_SUBREDDITS)")
    parser.add_argument("--lookback-days", type=int, default=None, help="Only posts newer than this many days (default: 76)")
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

    if args.subreddits:
        settings.subreddits = [s.strip() for s in args.subreddits.split(",") if s.strip()]
    if args.lookback_days:
        settings.lookback_days = args.lookback_days
    if args.data_dir:
        settings.data_dir = Path(args.data_dir)

    setup_logging(log_dir=str(settings.log_dir), log_filename="pipeline.log")
    asyncio.run(discover(settings))


if __name__ == "__main__":
    main()
