"""Scraping stage: fetch full threads for discovered references.

For every discovered reference whose thread is not yet in the threads store, fetch
the submission and its complete comment tree, flatten it into parent-linked
replies, and append one ThreadRecord. Threads are appended one at a time, right
after their fetch succeeds, so an interrupted run loses at most the thread in flight.

Key Functions:
    build_thread_record: RawThread -> ThreadRecord (flattening the reply tree)
    load_references: read discovered references, skipping malformed lines
    run_scrape: the stage loop
"""

import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol

import structlog

from versus.errors import STAGE_SCRAPE, PreconditionError, StageErrors
from versus.models.thread_models import DiscoveredReference, ThreadRecord
from versus.reddit import RawThread, extract_thread_id, flatten_comment_forest
from versus.storage import JsonlStore

logger = structlog.get_logger()

PROGRESS_EVERY = 10


class ThreadSource(Protocol):
    async def fetch_thread(self, thread_id: str) -> RawThread:
        ...


@dataclass
class ScrapeStats:
    """Summary of one scraping run."""
    total_references: int = 0
    scraped: int = 0
    skipped: int = 0
    comments: int = 0
    errors: Optional[StageErrors] = None
    elapsed_seconds: float = 0.0

    @property
    def error_count(self) -> int:
        return self.errors.count if self.errors else 0


def build_thread_record(raw: RawThread) -> ThreadRecord:
    """Flatten a fetched thread into the record that is persisted."""
    return ThreadRecord(
        post_id=raw.post_id,
        subreddit=raw.subreddit,
        title=raw.title,
        selftext=raw.selftext or "",
        score=raw.score,
        url=raw.url,
        permalink=raw.permalink,
        author=raw.author,
        created=raw.created,
        num_comments=raw.num_comments,
        comments=flatten_comment_forest(raw.comments, raw.post_id),
    )


def load_references(store: JsonlStore) -> List[DiscoveredReference]:
    """Load discovered references in file order.

    Raises:
        PreconditionError: If the discovered-references file does not exist
    """
    if not store.exists():
        raise PreconditionError(
            f"No discovered URLs file found: {store.path}. Run discovery first."
        )
    return list(JsonlStore(store.path, DiscoveredReference.from_record).scan())


async def run_scrape(
    source: ThreadSource,
    discovered_store: JsonlStore,
    threads_store: JsonlStore,
    delay: float = 1.0,
) -> ScrapeStats:
    """Scrape every discovered thread not already in the threads store.

    Per reference: a URL with no thread id is counted as an error; a thread
    already scraped (or already seen earlier in this run) is skipped; a fetch
    failure is logged, counted as an error, and the loop moves on. The fixed
    delay follows every fetch attempt.

    Args:
        source: Thread capability (RedditSource or a test double)
        discovered_store: Store of DiscoveredReference lines
        threads_store: Store of ThreadRecord lines (appended to)
        delay: Seconds to sleep after each fetch

    Returns:
        ScrapeStats

    Raises:
        PreconditionError: If the discovered-references file does not exist
    """
    references = load_references(discovered_store)
    scraped_ids = threads_store.existing_keys("postId")

    errors = StageErrors(STAGE_SCRAPE)
    stats = ScrapeStats(total_references=len(references), errors=errors)
    started = time.monotonic()

    logger.info(
        "scrape_started",
        references=len(references),
        already_scraped=len(scraped_ids),
    )

    for index, reference in enumerate(references):
        thread_id = extract_thread_id(reference.url)

        if not thread_id:
            logger.warning("invalid_thread_url", url=reference.url)
            errors.append(reference.url, ValueError(f"Invalid URL: {reference.url}"))
            continue

        if thread_id in scraped_ids:
            logger.debug("thread_already_scraped", post_id=thread_id, title=reference.title)
            stats.skipped += 1
            continue

        try:
            raw = await source.fetch_thread(thread_id)
            record = build_thread_record(raw)
        except Exception as e:
            logger.error(
                "thread_scrape_failed",
                post_id=thread_id,
                url=reference.url,
                error=str(e),
                error_type=type(e).__name__,
            )
            errors.append(reference.url, e, {"post_id": thread_id})
        else:
            threads_store.append(record)
            scraped_ids.add(record.post_id)
            scraped_ids.add(thread_id)
            stats.scraped += 1
            stats.comments += len(record.comments)

            logger.info(
                "thread_scraped",
                post_id=record.post_id,
                title=record.title,
                score=record.score,
                num_comments=record.num_comments,
                kept_comments=len(record.comments),
            )

            if stats.scraped % PROGRESS_EVERY == 0:
                elapsed = time.monotonic() - started
                remaining = len(references) - index - 1
                logger.info(
                    "scrape_progress",
                    scraped=stats.scraped,
                    comments=stats.comments,
                    eta_seconds=round(elapsed / stats.scraped * remaining),
                )

        await asyncio.sleep(delay)

    stats.elapsed_seconds = time.monotonic() - started

    logger.info(
        "scrape_complete",
        scraped=stats.scraped,
        skipped=stats.skipped,
        errors=errors.count,
        comments=stats.comments,
        elapsed_seconds=round(stats.elapsed_seconds, 1),
    )
    return stats
