"""
Tests for the Reddit adapter: client initialization, id helpers, and
iterative flattening of comment trees.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from versus.reddit import (
    RedditAPIError,
    RedditSource,
    extract_thread_id,
    flatten_comment_forest,
    full_permalink,
    get_reddit_client,
    resolve_parent_id,
)

from tests.conftest import FakeComment


class TestGetRedditClient:
    """Test get_reddit_client() credential checks."""

    @pytest.mark.asyncio
    async def test_missing_env_vars_raise_value_error(self):
        with patch.dict('os.environ', {}, clear=True):
            with pytest.raises(ValueError, match='REDDIT_CLIENT_ID.*REDDIT_CLIENT_SECRET.*REDDIT_USER_AGENT'):
                await get_reddit_client()

    @pytest.mark.asyncio
    async def test_builds_client_from_env(self):
        env = {
            'REDDIT_CLIENT_ID': 'id',
            'REDDIT_CLIENT_SECRET': 'secret',
            'REDDIT_USER_AGENT': 'versus/1.0',
        }
        with patch.dict('os.environ', env, clear=True):
            with patch('versus.reddit.asyncpraw.Reddit') as mock_reddit:
                await get_reddit_client()

        mock_reddit.assert_called_once_with(client_id='id', client_secret='secret', user_agent='versus/1.0')

    @pytest.mark.asyncio
    async def test_password_grant_when_username_and_password_set(self):
        env = {
            'REDDIT_CLIENT_ID': 'id',
            'REDDIT_CLIENT_SECRET': 'secret',
            'REDDIT_USER_AGENT': 'versus/1.0',
            'REDDIT_USERNAME': 'user',
            'REDDIT_PASSWORD': 'pw',
        }
        with patch.dict('os.environ', env, clear=True):
            with patch('versus.reddit.asyncpraw.Reddit') as mock_reddit:
                await get_reddit_client()

        assert mock_reddit.call_args.kwargs['username'] == 'user'
        assert mock_reddit.call_args.kwargs['password'] == 'pw'

    @pytest.mark.asyncio
    async def test_init_failure_wrapped(self):
        env = {'REDDIT_CLIENT_ID': 'id', 'REDDIT_CLIENT_SECRET': 's', 'REDDIT_USER_AGENT': 'ua'}
        with patch.dict('os.environ', env, clear=True):
            with patch('versus.reddit.asyncpraw.Reddit', side_effect=RuntimeError("bad config")):
                with pytest.raises(RedditAPIError, match="bad config"):
                    await get_reddit_client()


class TestHelpers:

    def test_extract_thread_id(self):
        assert extract_thread_id("https://reddit.com/r/codex/comments/1nqvcr6/my_deep_dive/") == "1nqvcr6"
        assert extract_thread_id("https://reddit.com/r/codex/") is None
        assert extract_thread_id("") is None

    def test_resolve_parent_id(self):
        assert resolve_parent_id("t3_post") is None
        assert resolve_parent_id("t1_abc") == "abc"
        assert resolve_parent_id(None) is None

    def test_full_permalink(self):
        assert full_permalink("/r/codex/comments/x/") == "https://reddit.com/r/codex/comments/x/"
        assert full_permalink("https://reddit.com/r/a/") == "https://reddit.com/r/a/"


class TestFlattenCommentForest:
    """Test flatten_comment_forest()."""

    def test_parent_and_depth_from_raw_parent_ids(self):
        child = FakeComment("B", "t1_A", "reply")
        root = FakeComment("A", "t3_P", "top", replies=[child])

        replies = flatten_comment_forest([root], "P")

        assert [(r.id, r.parent_id, r.depth) for r in replies] == [("A", None, 0), ("B", "A", 1)]
        assert all(r.post_id == "P" for r in replies)

    def test_pre_order(self):
        tree = [
            FakeComment("a", "t3_p", "a", replies=[
                FakeComment("a1", "t1_a", "a1", replies=[FakeComment("a1x", "t1_a1", "a1x")]),
                FakeComment("a2", "t1_a", "a2"),
            ]),
            FakeComment("b", "t3_p", "b"),
        ]
        assert [r.id for r in flatten_comment_forest(tree, "p")] == ["a", "a1", "a1x", "a2", "b"]

    def test_deleted_comment_drops_subtree(self):
        tree = [
            FakeComment("a", "t3_p", "[deleted]", replies=[FakeComment("a1", "t1_a", "orphan")]),
            FakeComment("b", "t3_p", "[removed]"),
            FakeComment("c", "t3_p", "kept"),
        ]
        assert [r.id for r in flatten_comment_forest(tree, "p")] == ["c"]

    def test_depth_invariant_holds_for_deep_chain(self):
        leaf = FakeComment("n0", "t3_p", "x")
        head = leaf
        for i in range(1, 3000):
            node = FakeComment(f"n{i}", f"t1_n{i - 1}", "x")
            head.replies = [node]
            head = node

        replies = flatten_comment_forest([leaf], "p")
        by_id = {r.id: r for r in replies}

        assert len(replies) == 3000
        for reply in replies:
            if reply.parent_id is not None:
                assert reply.depth == by_id[reply.parent_id].depth + 1

    def test_missing_author_is_deleted(self):
        replies = flatten_comment_forest([FakeComment("a", "t3_p", "x", author=None)], "p")
        assert replies[0].author == "[deleted]"


class TestRedditSource:

    @pytest.mark.asyncio
    async def test_fetch_thread_expands_all_comments(self):
        submission = MagicMock()
        submission.id = "p1"
        submission.subreddit.display_name = "codex"
        submission.title = "Claude Code vs Codex"
        submission.selftext = ""
        submission.score = 10
        submission.url = "https://reddit.com/r/codex/comments/p1/x/"
        submission.permalink = "/r/codex/comments/p1/x/"
        submission.author = "op"
        submission.created_utc = 1700000000.0
        submission.num_comments = 1
        submission.comments.replace_more = AsyncMock()
        submission.comments.__iter__.return_value = iter([FakeComment("c1", "t3_p1", "hi")])

        reddit = MagicMock()
        reddit.submission = AsyncMock(return_value=submission)

        raw = await RedditSource(reddit).fetch_thread("p1")

        submission.comments.replace_more.assert_awaited_once_with(limit=None)
        assert raw.permalink == "https://reddit.com/r/codex/comments/p1/x/"
        assert raw.created == 1700000000
        assert [c.id for c in raw.comments] == ["c1"]

    @pytest.mark.asyncio
    async def test_fetch_thread_failure_wrapped(self):
        reddit = MagicMock()
        reddit.submission = AsyncMock(side_effect=RuntimeError("429"))

        with pytest.raises(RedditAPIError, match="429"):
            await RedditSource(reddit).fetch_thread("p1")


class _AsyncListing:
    """Async iterator standing in for an Async PRAW ListingGenerator."""

    def __init__(self, submissions, error=None):
        self._submissions = list(submissions)
        self._error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._error is not None:
            raise self._error
        if not self._submissions:
            raise StopAsyncIteration
        return self._submissions.pop(0)


def _submission(id, created_utc=1700000000.0, selftext="body"):
    submission = MagicMock()
    submission.id = id
    submission.fullname = f"t3_{id}"
    submission.title = f"title {id}"
    submission.selftext = selftext
    submission.created_utc = created_utc
    submission.permalink = f"/r/codex/comments/{id}/slug/"
    submission.score = 7
    return submission


def _reddit_with_listing(listing):
    subreddit = MagicMock()
    subreddit.new = MagicMock(return_value=listing)
    reddit = MagicMock()
    reddit.subreddit = AsyncMock(return_value=subreddit)
    return reddit, subreddit


class TestFetchPage:

    @pytest.mark.asyncio
    async def test_page_items_and_cursor(self):
        reddit, subreddit = _reddit_with_listing(_AsyncListing([
            _submission("b2", 1700000100.9, selftext=None),
            _submission("a1", 1700000000.0),
        ]))

        page = await RedditSource(reddit).fetch_page("codex", after=None, limit=100)

        reddit.subreddit.assert_awaited_once_with("codex")
        subreddit.new.assert_called_once_with(limit=100, params={})
        assert [item.id for item in page.items] == ["b2", "a1"]
        assert page.next_cursor == "t3_a1"
        assert page.items[0].permalink == "https://reddit.com/r/codex/comments/b2/slug/"
        assert page.items[0].created == 1700000100
        assert page.items[0].body == ""

    @pytest.mark.asyncio
    async def test_cursor_forwarded_as_after_param(self):
        reddit, subreddit = _reddit_with_listing(_AsyncListing([_submission("c3")]))

        await RedditSource(reddit).fetch_page("codex", after="t3_a1", limit=25)

        subreddit.new.assert_called_once_with(limit=25, params={"after": "t3_a1"})

    @pytest.mark.asyncio
    async def test_empty_page_has_no_cursor(self):
        reddit, _ = _reddit_with_listing(_AsyncListing([]))

        page = await RedditSource(reddit).fetch_page("codex", after="t3_a1")

        assert page.items == []
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_listing_failure_wrapped(self):
        reddit, _ = _reddit_with_listing(_AsyncListing([], error=RuntimeError("503 Service Unavailable")))

        with pytest.raises(RedditAPIError, match="r/codex"):
            await RedditSource(reddit).fetch_page("codex", after=None)
