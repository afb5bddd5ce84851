"""Reddit Integration Module

This module provides Async PRAW client initialization and the two source
capabilities the pipeline consumes:

- RedditSource.fetch_page: one page of a subreddit's newest posts, plus the cursor
  for the next page (discovery)
- RedditSource.fetch_thread: a submission with its complete comment tree, all
  "load more" stubs expanded (scraping)

It also holds the pure helpers that turn Reddit's shapes into pipeline records:
thread-id extraction from permalinks, parent-id resolution, and iterative
flattening of the comment tree into parent-linked ReplyRecords.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

import asyncpraw
import structlog

from versus.errors import SourceError
from versus.models.thread_models import ReplyRecord

logger = structlog.get_logger()

REDDIT_BASE_URL = "https://reddit.com"

# Bodies Reddit substitutes for content that is gone
REMOVED_BODIES = {"", "[deleted]", "[removed]"}

_THREAD_ID_PATTERN = re.compile(r"comments/(\w+)")


class RedditAPIError(SourceError):
    """Reddit API failure (authentication, listing, or thread fetch)."""
    pass


async def get_reddit_client() -> asyncpraw.Reddit:
    """Initialize and return an Async PRAW Reddit client.

    Reads authentication credentials from environment variables:
    - REDDIT_CLIENT_ID: Reddit application client ID
    - REDDIT_CLIENT_SECRET: Reddit application client secret
    - REDDIT_USER_AGENT: User agent string for API requests
    - REDDIT_USERNAME / REDDIT_PASSWORD: optional, script-app password grant

    Returns:
        asyncpraw.Reddit: Configured Reddit client instance

    Raises:
        ValueError: If any required environment variable is missing or empty
        RedditAPIError: If Async PRAW fails to build the client
    """
    missing_vars = []

    client_id = os.environ.get('REDDIT_CLIENT_ID', '').strip()
    client_secret = os.environ.get('REDDIT_CLIENT_SECRET', '').strip()
    user_agent = os.environ.get('REDDIT_USER_AGENT', '').strip()

    if not client_id:
        missing_vars.append('REDDIT_CLIENT_ID')
    if not client_secret:
        missing_vars.append('REDDIT_CLIENT_SECRET')
    if not user_agent:
        missing_vars.append('REDDIT_USER_AGENT')

    if missing_vars:
        error_msg = f"Missing required environment variable(s): {', '.join(missing_vars)}"
        logger.error("reddit_client_init_failed", missing_vars=missing_vars)
        raise ValueError(error_msg)

    credentials = {
        'client_id': client_id,
        'client_secret': client_secret,
        'user_agent': user_agent,
    }

    username = os.environ.get('REDDIT_USERNAME', '').strip()
    password = os.environ.get('REDDIT_PASSWORD', '').strip()
    if username and password:
        credentials['username'] = username
        credentials['password'] = password

    try:
        reddit = asyncpraw.Reddit(**credentials)
        logger.info("reddit_client_initialized", user_agent=user_agent, password_grant=bool(username and password))
        return reddit

    except Exception as e:
        logger.error(
            "reddit_authentication_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise RedditAPIError(f"Reddit client initialization failed: {str(e)}") from e


@dataclass
class ListingItem:
    """One post from a subreddit listing, reduced to what discovery needs."""
    id: str
    fullname: str
    title: str
    body: str
    created: int
    permalink: str
    score: int


@dataclass
class ListingPage:
    """A page of listing items and the cursor for the page after it (None at the end)."""
    items: List[ListingItem]
    next_cursor: Optional[str]


@dataclass
class RawThread:
    """A submission's fields plus its unflattened top-level comments."""
    post_id: str
    subreddit: str
    title: str
    selftext: str
    score: int
    url: str
    permalink: str
    author: str
    created: int
    num_comments: int
    comments: List[Any] = field(default_factory=list)


def author_name(thing: Any) -> str:
    """Return the author's name, or "[deleted]" for deleted/suspended accounts."""
    author = getattr(thing, 'author', None)
    if author is None:
        return "[deleted]"
    name = getattr(author, 'name', None)
    return str(name) if name else str(author)


def full_permalink(permalink: str) -> str:
    """Prefix a Reddit-relative permalink with the site URL."""
    if permalink.startswith("http"):
        return permalink
    return f"{REDDIT_BASE_URL}{permalink}"


def extract_thread_id(url: str) -> Optional[str]:
    """Extract the post id from a thread URL.

    Example:
        >>> extract_thread_id("https://reddit.com/r/codex/comments/1nqvcr6/my_deep_dive/")
        '1nqvcr6'
        >>> extract_thread_id("https://example.com/") is None
        True
    """
    if not url:
        return None
    match = _THREAD_ID_PATTERN.search(url)
    return match.group(1) if match else None


def resolve_parent_id(raw_parent_id: Optional[str]) -> Optional[str]:
    """Map Reddit's parent fullname to a ReplyRecord.parent_id.

    "t3_<post>" (the submission) becomes None; "t1_<comment>" becomes "<comment>".
    """
    if not raw_parent_id:
        return None
    if raw_parent_id.startswith('t1_'):
        return raw_parent_id[3:]
    return None


def is_removed_body(body: Optional[str]) -> bool:
    return body is None or body.strip() in REMOVED_BODIES


def flatten_comment_forest(top_level: Iterable[Any], post_id: str) -> List[ReplyRecord]:
    """Flatten a comment tree into parent-linked replies, in pre-order.

    Uses an explicit stack instead of recursion so arbitrarily deep threads
    cannot hit the interpreter's recursion limit. Depth is the distance from
    the submission (top-level comments are depth 0). A deleted or removed
    comment is dropped together with its whole subtree, so every kept reply's
    parent is also kept and depth == parent.depth + 1 holds.

    Args:
        top_level: Top-level comments (Async PRAW Comment objects or anything
            exposing id, parent_id, body, score, author, created_utc, replies)
        post_id: Id of the submission the comments belong to

    Returns:
        list[ReplyRecord]: Flattened replies; a parent always precedes its children
    """
    arena: List[ReplyRecord] = []
    stack = [(comment, 0) for comment in reversed(list(top_level))]

    while stack:
        comment, depth = stack.pop()

        body = getattr(comment, 'body', None)
        if is_removed_body(body):
            continue

        arena.append(ReplyRecord(
            id=comment.id,
            parent_id=resolve_parent_id(getattr(comment, 'parent_id', None)),
            post_id=post_id,
            depth=depth,
            text=body,
            score=int(getattr(comment, 'score', 0) or 0),
            author=author_name(comment),
            created=int(getattr(comment, 'created_utc', 0) or 0),
        ))

        replies = getattr(comment, 'replies', None)
        children = list(replies) if replies is not None else []
        for child in reversed(children):
            stack.append((child, depth + 1))

    return arena


class RedditSource:
    """Source capability backed by an Async PRAW client.

    Example:
        >>> reddit = await get_reddit_client()
        >>> source = RedditSource(reddit)
        >>> page = await source.fetch_page("codex", after=None, limit=100)
        >>> raw = await source.fetch_thread(page.items[0].id)
    """

    def __init__(self, reddit: asyncpraw.Reddit):
        self.reddit = reddit

    async def fetch_page(self, subreddit_name: str, after: Optional[str], limit: int = 100) -> ListingPage:
        """Fetch one page of a subreddit's newest posts.

        Args:
            subreddit_name: Subreddit to list
            after: Fullname cursor returned by the previous page (None for the first page)
            limit: Page size

        Returns:
            ListingPage with items newest-first and the fullname of the last item as cursor

        Raises:
            RedditAPIError: If Async PRAW raises while listing
        """
        params = {"after": after} if after else {}
        try:
            subreddit = await self.reddit.subreddit(subreddit_name)
            items = []
            async for submission in subreddit.new(limit=limit, params=params):
                items.append(ListingItem(
                    id=submission.id,
                    fullname=submission.fullname,
                    title=submission.title,
                    body=submission.selftext or "",
                    created=int(submission.created_utc),
                    permalink=full_permalink(submission.permalink),
                    score=submission.score,
                ))
        except Exception as e:
            logger.error(
                "listing_fetch_failed",
                subreddit=subreddit_name,
                after=after,
                error=str(e),
                error_type=type(e).__name__
            )
            raise RedditAPIError(f"Listing r/{subreddit_name} failed: {str(e)}") from e

        next_cursor = items[-1].fullname if items else None
        return ListingPage(items=items, next_cursor=next_cursor)

    async def fetch_thread(self, thread_id: str) -> RawThread:
        """Fetch a submission and its entire comment tree.

        Every MoreComments stub is replaced (replace_more(limit=None)), so the
        returned tree has no depth or count limit.

        Raises:
            RedditAPIError: If the submission or any comment expansion fails
        """
        try:
            submission = await self.reddit.submission(thread_id)
            await submission.comments.replace_more(limit=None)
            top_level = list(submission.comments)

            return RawThread(
                post_id=submission.id,
                subreddit=submission.subreddit.display_name,
                title=submission.title,
                selftext=submission.selftext or "",
                score=submission.score,
                url=submission.url,
                permalink=full_permalink(submission.permalink),
                author=author_name(submission),
                created=int(submission.created_utc),
                num_comments=submission.num_comments,
                comments=top_level,
            )
        except Exception as e:
            logger.error(
                "thread_fetch_failed",
                thread_id=thread_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise RedditAPIError(f"Fetching thread {thread_id} failed: {str(e)}") from e

    async def close(self) -> None:
        await self.reddit.close()
