"""Restrict scraped threads to those found through the Reddit listing channel.

Copies every ThreadRecord whose postId was discovered with query "reddit_api"
into a separate clean file. Threads already in the clean file are skipped, so
re-running only appends what is new.
"""

from dataclasses import dataclass

import structlog

from versus.errors import PreconditionError
from versus.models.thread_models import REDDIT_API_QUERY, DiscoveredReference, ThreadRecord
from versus.reddit import extract_thread_id
from versus.storage import JsonlStore

logger = structlog.get_logger()


@dataclass
class CleanStats:
    allowed_threads: int = 0
    scanned: int = 0
    kept: int = 0
    already_present: int = 0
    dropped: int = 0


def allowed_post_ids(discovered: JsonlStore, query: str = REDDIT_API_QUERY) -> set:
    ids = set()
    for reference in JsonlStore(discovered.path, DiscoveredReference.from_record).scan():
        if reference.query != query:
            continue
        thread_id = extract_thread_id(reference.url)
        if thread_id:
            ids.add(thread_id)
    return ids


def filter_clean_dataset(
    discovered: JsonlStore,
    threads: JsonlStore,
    clean: JsonlStore,
    query: str = REDDIT_API_QUERY,
) -> CleanStats:
    """Append listing-channel threads from ``threads`` to ``clean``.

    Raises:
        PreconditionError: If the discovered or threads file is missing
    """
    for store in (discovered, threads):
        if not store.exists():
            raise PreconditionError(f"{store.path} not found")

    stats = CleanStats()
    allowed = allowed_post_ids(discovered, query)
    stats.allowed_threads = len(allowed)
    present = clean.existing_keys("postId")

    for thread in JsonlStore(threads.path, ThreadRecord.from_record).scan():
        stats.scanned += 1
        if thread.post_id not in allowed:
            stats.dropped += 1
            continue
        if thread.post_id in present:
            stats.already_present += 1
            continue

        clean.append(thread)
        present.add(thread.post_id)
        stats.kept += 1

    logger.info(
        "clean_dataset_written",
        path=str(clean.path),
        allowed_threads=stats.allowed_threads,
        scanned=stats.scanned,
        kept=stats.kept,
        already_present=stats.already_present,
        dropped=stats.dropped,
    )
    return stats
