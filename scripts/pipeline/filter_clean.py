#!/usr/bin/env python3
"""Write reddit_data_clean.jsonl: only threads found by the Reddit listing channel.

Threads whose postId was discovered with query "reddit_api" are copied from
reddit_data.jsonl; threads already in the clean file are skipped.

Usage:
    python scripts/pipeline/filter_clean.py [--data-dir .]
"""

import argparse
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from versus.config import load_dotenv, load_settings

load_dotenv()

from versus.clean_dataset import filter_clean_dataset
from versus.errors import PreconditionError
from versus.storage import JsonlStore
from versus.utils.logging_config import setup_logging


def main():
    parser = argparse.ArgumentParser(
        description="Keep only threads discovered through the Reddit listing channel"
    )
    parser.add_argument("--data-dir", default=None, help="Directory holding the JSONL files (default: $VERSUS_DATA_DIR or .)")
    args = parser.parse_args()

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    if args.data_dir:
        settings.data_dir = Path(args.data_dir)

    setup_logging(log_dir=str(settings.log_dir), log_filename="pipeline.log")

    try:
        stats = filter_clean_dataset(
            JsonlStore(settings.discovered_path),
            JsonlStore(settings.threads_path),
            JsonlStore(settings.clean_threads_path),
        )
    except PreconditionError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Listing-channel threads: {stats.allowed_threads}")
    print(f"Threads scanned:         {stats.scanned}")
    print(f"  Copied:                {stats.kept}")
    print(f"  Already present:       {stats.already_present}")
    print(f"  Dropped:               {stats.dropped}")
    print(f"\nWrote {settings.clean_threads_path}")


if __name__ == "__main__":
    main()
