"""Discovery stage: find threads that mention both tools.

Pages through each subreddit's newest posts, keeps the ones whose title + body
satisfy the keyword predicate, and appends a DiscoveredReference per match to the
discovered-URLs store. Known permalinks are loaded once at the start of a run and
skipped, so re-running discovery never duplicates a reference.

Key Functions:
    discover_subreddit: one subreddit, newest-first, until the lookback cutoff
    run_discovery: every configured subreddit; one failing subreddit does not stop the rest
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Protocol, Set

import structlog

from versus.errors import STAGE_DISCOVERY, StageErrors
from versus.models.thread_models import REDDIT_API_QUERY, DiscoveredReference
from versus.reddit import ListingItem, ListingPage
from versus.storage import JsonlStore
from versus.tools import KeywordFilter

logger = structlog.get_logger()

SNIPPET_LENGTH = 200


class ListingSource(Protocol):
    async def fetch_page(self, subreddit_name: str, after: Optional[str], limit: int = 100) -> ListingPage:
        ...


@dataclass
class SubredditDiscovery:
    """Counters for a single subreddit."""
    subreddit: str
    scanned: int = 0
    matched: int = 0
    reached_cutoff: bool = False
    failed: bool = False


@dataclass
class DiscoveryStats:
    """Summary of one discovery run."""
    per_subreddit: Dict[str, SubredditDiscovery] = field(default_factory=dict)
    errors: Optional[StageErrors] = None
    elapsed_seconds: float = 0.0

    @property
    def scanned(self) -> int:
        return sum(s.scanned for s in self.per_subreddit.values())

    @property
    def matched(self) -> int:
        return sum(s.matched for s in self.per_subreddit.values())

    @property
    def error_count(self) -> int:
        return self.errors.count if self.errors else 0


def build_reference(item: ListingItem, subreddit: str, now_ms: Optional[int] = None) -> DiscoveredReference:
    """Map a listing item to the DiscoveredReference that is persisted."""
    return DiscoveredReference(
        url=item.permalink,
        title=item.title,
        snippet=item.body[:SNIPPET_LENGTH] if item.body else "",
        discovered_at=now_ms if now_ms is not None else int(time.time() * 1000),
        query=REDDIT_API_QUERY,
        subreddit=subreddit,
        score=item.score,
        created=item.created,
    )


async def discover_subreddit(
    source: ListingSource,
    subreddit: str,
    store: JsonlStore,
    known_urls: Set[str],
    keywords: KeywordFilter,
    cutoff: int,
    page_size: int = 100,
    delay: float = 1.0,
    errors: Optional[StageErrors] = None,
) -> SubredditDiscovery:
    """Discover matching posts in one subreddit.

    Pages newest-first until a page is empty, there is no next cursor, or a post
    older than ``cutoff`` is seen (the listing is chronological, so nothing after
    it can qualify). Each match is appended immediately and added to
    ``known_urls`` so a partial run is never lost and never duplicated.

    A page-fetch error ends this subreddit's discovery; it is logged and recorded
    in ``errors`` but not raised.

    Args:
        source: Listing capability (RedditSource or a test double)
        subreddit: Subreddit name
        store: Discovered-references store to append to
        known_urls: Permalinks already discovered; updated in place
        keywords: Predicate applied to "title body"
        cutoff: Epoch seconds; older posts end the scan
        page_size: Items requested per page
        delay: Seconds to sleep after each page request
        errors: Collector for the failure, if any

    Returns:
        SubredditDiscovery counters
    """
    result = SubredditDiscovery(subreddit=subreddit)
    after: Optional[str] = None

    logger.info("subreddit_discovery_started", subreddit=subreddit, cutoff=cutoff)

    while True:
        try:
            page = await source.fetch_page(subreddit, after, page_size)
        except Exception as e:
            logger.error(
                "subreddit_discovery_aborted",
                subreddit=subreddit,
                after=after,
                error=str(e),
                error_type=type(e).__name__,
            )
            result.failed = True
            if errors is not None:
                errors.append(subreddit, e, {"after": after})
            break

        if not page.items:
            logger.info("subreddit_listing_exhausted", subreddit=subreddit)
            break

        result.scanned += len(page.items)

        for item in page.items:
            if item.created < cutoff:
                result.reached_cutoff = True
                break

            if item.permalink in known_urls:
                continue

            if not keywords.matches(f"{item.title} {item.body or ''}"):
                continue

            reference = build_reference(item, subreddit)
            store.append(reference)
            known_urls.add(item.permalink)
            result.matched += 1

            logger.info("thread_discovered", subreddit=subreddit, url=item.permalink, title=item.title, score=item.score)

        logger.debug("discovery_page_processed", subreddit=subreddit, scanned=result.scanned, matched=result.matched)

        await asyncio.sleep(delay)

        if result.reached_cutoff or not page.next_cursor:
            break
        after = page.next_cursor

    logger.info(
        "subreddit_discovery_complete",
        subreddit=subreddit,
        scanned=result.scanned,
        matched=result.matched,
        reached_cutoff=result.reached_cutoff,
        failed=result.failed,
    )
    return result


async def run_discovery(
    source: ListingSource,
    subreddits: Iterable[str],
    store: JsonlStore,
    keywords: KeywordFilter,
    lookback: timedelta,
    page_size: int = 100,
    delay: float = 1.0,
    now: Optional[datetime] = None,
) -> DiscoveryStats:
    """Run discovery over every subreddit, sequentially.

    Args:
        source: Listing capability
        subreddits: Subreddit names, processed in order
        store: Discovered-references store
        keywords: Predicate every kept post must satisfy
        lookback: How far back from ``now`` posts may be
        page_size: Items requested per page
        delay: Seconds to sleep after each page request
        now: Reference time (default: current UTC time)

    Returns:
        DiscoveryStats with per-subreddit counters and collected errors
    """
    subreddits = list(subreddits)
    now = now or datetime.now(timezone.utc)
    cutoff = int((now - lookback).timestamp())
    started = time.monotonic()

    known_urls = store.existing_keys("url")
    errors = StageErrors(STAGE_DISCOVERY)
    stats = DiscoveryStats(errors=errors)

    logger.info(
        "discovery_started",
        subreddits=subreddits,
        cutoff=cutoff,
        keywords=keywords.describe(),
        known_urls=len(known_urls),
    )

    for subreddit in subreddits:
        stats.per_subreddit[subreddit] = await discover_subreddit(
            source,
            subreddit,
            store,
            known_urls,
            keywords,
            cutoff,
            page_size=page_size,
            delay=delay,
            errors=errors,
        )

    stats.elapsed_seconds = time.monotonic() - started

    logger.info(
        "discovery_complete",
        scanned=stats.scanned,
        matched=stats.matched,
        errors=errors.count,
        elapsed_seconds=round(stats.elapsed_seconds, 1),
    )
    return stats
