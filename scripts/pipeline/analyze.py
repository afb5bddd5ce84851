#!/usr/bin/env python3
"""Stage 3: Classify comparative replies with the OpenAI classifier.

Reads reddit_data.jsonl (or the clean file with --clean), selects replies whose
thread context names both tools and that have not been classified yet, and
classifies up to --batch-size of them. Each result is appended to
sentiment_analysis.jsonl as soon as it is parsed; one summary line is appended
to logs/runs.jsonl per run.

Usage:
    python scripts/pipeline/analyze.py [--batch-size 500] [--model gpt-4o-mini] [--clean] [--dry-run]

Requires env var: OPENAI_API_KEY (not needed for --dry-run)
"""

import argparse
import asyncio
import math
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from versus.config import load_dotenv, load_settings

load_dotenv()

from versus.ai_client import OpenAIClient
from versus.classification import (
    AVG_OUTPUT_TOKENS,
    CHARS_PER_TOKEN,
    load_classified_keys,
    load_threads,
    run_classification,
    select_candidates,
)
from versus.errors import PreconditionError
from versus.storage import JsonlStore
from versus.utils.logging_config import setup_logging


def dry_run(settings, threads_path: Path) -> None:
    """Print candidate counts and an estimated cost without calling the API."""
    threads = load_threads(JsonlStore(threads_path))
    classified = load_classified_keys(JsonlStore(settings.results_path))
    candidates = select_candidates(threads, classified, settings.tool_pair.keyword_filter())
    batch = candidates[:settings.batch_size]

    input_tokens = sum(math.ceil(len(c.context.full_text) / CHARS_PER_TOKEN) for c in batch)
    output_tokens = len(batch) * AVG_OUTPUT_TOKENS

    print(f"Threads:          {len(threads)}")
    print(f"Already analyzed: {len(classified)}")
    print(f"Candidates:       {len(candidates)}")
    print(f"This batch:       {len(batch)} (deferred: {len(candidates) - len(batch)})")
    print(f"\nEstimated cost: ${OpenAIClient.estimate_cost(input_tokens, output_tokens):.4f}")


async def analyze(settings, threads_path: Path) -> None:
    classifier = OpenAIClient(model=settings.model)

    print(f"Classifying with {settings.model}, batch size {settings.batch_size}...")
    run = await run_classification(
        JsonlStore(threads_path),
        JsonlStore(settings.results_path),
        JsonlStore(settings.run_log_path),
        classifier,
        settings.model,
        batch_size=settings.batch_size,
        delay=settings.classify_delay,
        pair=settings.tool_pair,
    )
    log = run.run_log

    print(f"\nClassification complete in {log.time_seconds}s")
    print(f"  Candidates:       {log.total_candidates} ({log.already_analyzed} already analyzed)")
    print(f"  Analyzed:         {log.analyzed_this_run}")
    print(f"  Deferred:         {run.deferred}")
    print(f"  Tokens:           {log.input_tokens} in / {log.output_tokens} out")
    print(f"  Estimated cost:   ${log.estimated_cost:.4f}")
    if run.errors.count:
        print(f"  Errors:           {run.errors.count} {run.errors.by_type()}")

    categories = {}
    for result in run.results:
        categories[result.comparison] = categories.get(result.comparison, 0) + 1
    if categories:
        print("  Categories:")
        for name, count in sorted(categories.items(), key=lambda item: -item[1]):
            print(f"    {name}: {count}")


def main():
    parser = argparse.ArgumentParser(
        description="Stage 3: Classify replies comparing the two tools"
    )
    parser.add_argument("--batch-size", type=int, default=None, help="Maximum replies to classify (default: $VERSUS_BATCH_SIZE or 500)")
    parser.add_argument("--model", default=None, help="Classifier model (default: $ANALYSIS_MODEL or gpt-4o-mini)")
    parser.add_argument("--data-dir", default=None, help="Directory holding the JSONL files (default: $VERSUS_DATA_DIR or .)")
    parser.add_argument("--clean", action="store_true", help="Read reddit_data_clean.jsonl instead of reddit_data.jsonl")
    parser.add_argument("--dry-run", action="store_true", help="Count candidates and estimate cost only")
    args = parser.parse_args()

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.batch_size:
        settings.batch_size = args.batch_size
    if args.model:
        settings.model = args.model
    if args.data_dir:
        settings.data_dir = Path(args.data_dir)

    threads_path = settings.clean_threads_path if args.clean else settings.threads_path

    if not threads_path.exists():
        print(f"Error: Input file not found: {threads_path}")
        print("Run scrape.py first to create it.")
        sys.exit(1)

    setup_logging(log_dir=str(settings.log_dir), log_filename="pipeline.log")

    if args.dry_run:
        dry_run(settings, threads_path)
        return

    if not os.environ.get("OPENAI_API_KEY"):
        print("Error: OPENAI_API_KEY environment variable not set.")
        print("Set it in your .env file or export it in your shell.")
        sys.exit(1)

    try:
        asyncio.run(analyze(settings, threads_path))
    except PreconditionError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
