"""
Shared pytest fixtures for the versus pipeline tests.

Stores live in tmp_path; the Reddit source and the classifier are in-memory
fakes, so no test touches the network.
"""

import json
from typing import Dict, List, Optional

import pytest

from versus.models.thread_models import ClassificationResult, ReplyRecord, ThreadRecord
from versus.reddit import ListingItem, ListingPage
from versus.storage import JsonlStore


NOW_TS = 1_760_000_000  # Reference "now", epoch seconds


class FakeListingSource:
    """Serves pre-built pages per subreddit; page N+1 is returned for page N's cursor."""

    def __init__(self, pages: Dict[str, List[ListingPage]], failures: Optional[Dict[str, Exception]] = None):
        self.pages = pages
        self.failures = failures or {}
        self.calls = []

    async def fetch_page(self, subreddit_name, after, limit=100):
        self.calls.append((subreddit_name, after, limit))
        if subreddit_name in self.failures:
            raise self.failures[subreddit_name]

        pages = self.pages.get(subreddit_name, [])
        if after is None:
            index = 0
        else:
            index = next(
                (i + 1 for i, page in enumerate(pages) if page.next_cursor == after),
                len(pages),
            )
        if index >= len(pages):
            return ListingPage(items=[], next_cursor=None)
        return pages[index]


class FakeThreadSource:
    """Returns RawThreads by id; ids in ``failures`` raise instead."""

    def __init__(self, threads, failures: Optional[Dict[str, Exception]] = None):
        self.threads = threads
        self.failures = failures or {}
        self.calls = []

    async def fetch_thread(self, thread_id):
        self.calls.append(thread_id)
        if thread_id in self.failures:
            raise self.failures[thread_id]
        return self.threads[thread_id]


class FakeComment:
    """Stand-in for an Async PRAW Comment."""

    def __init__(self, id, parent_id, body, replies=None, score=1, author="someone", created_utc=NOW_TS):
        self.id = id
        self.parent_id = parent_id
        self.body = body
        self.replies = list(replies or [])
        self.score = score
        self.author = author
        self.created_utc = created_utc


def classifier_response(comparison="claude_code_better", a="positive", b="negative", **extra) -> str:
    payload = {
        "comparison": comparison,
        "claudeCodeSentiment": a,
        "codexSentiment": b,
        "reasoning": "Prefers Claude Code for refactors.",
        "themes": ["speed", "accuracy"],
        "quoteWorthy": False,
    }
    payload.update(extra)
    return json.dumps(payload)


class FakeClassifier:
    """Returns queued contents in order, then ``default``; queued Exceptions are raised."""

    def __init__(self, responses=None, default=None, usage=None):
        self.responses = list(responses or [])
        self.default = default if default is not None else classifier_response()
        self.usage = usage if usage is not None else {"prompt_tokens": 100, "completion_tokens": 20, "total_tokens": 120}
        self.calls = []

    async def send_chat_completion(self, system_prompt, user_prompt, **kwargs):
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt, **kwargs})
        content = self.responses.pop(0) if self.responses else self.default
        if isinstance(content, Exception):
            raise content
        return {"content": content, "usage": dict(self.usage)}


def make_listing_item(id, title, body="", created=NOW_TS - 3600, score=10, subreddit="test") -> ListingItem:
    return ListingItem(
        id=id,
        fullname=f"t3_{id}",
        title=title,
        body=body,
        created=created,
        permalink=f"https://reddit.com/r/{subreddit}/comments/{id}/slug/",
        score=score,
    )


def make_reply(id, parent_id=None, depth=0, text="", score=1, post_id="p1") -> ReplyRecord:
    return ReplyRecord(
        id=id,
        parent_id=parent_id,
        post_id=post_id,
        depth=depth,
        text=text,
        score=score,
        author="someone",
        created=NOW_TS,
    )


def make_thread(post_id="p1", title="Claude Code vs Codex", selftext="", comments=None, subreddit="ClaudeCode") -> ThreadRecord:
    permalink = f"https://reddit.com/r/{subreddit}/comments/{post_id}/slug/"
    return ThreadRecord(
        post_id=post_id,
        subreddit=subreddit,
        title=title,
        selftext=selftext,
        score=42,
        url=permalink,
        permalink=permalink,
        author="op",
        created=NOW_TS,
        num_comments=len(comments or []),
        comments=list(comments or []),
    )


def make_result(comment_id, post_id="p1", comparison="claude_code_better", score=1,
                subreddit="ClaudeCode", themes=None, analyzed_at=0, model="gpt-4o-mini",
                quote_worthy=False) -> ClassificationResult:
    return ClassificationResult(
        comment_id=comment_id,
        post_id=post_id,
        subreddit=subreddit,
        permalink=f"https://reddit.com/r/{subreddit}/comments/{post_id}/slug/{comment_id}",
        comparison=comparison,
        tool_a_sentiment="positive",
        tool_b_sentiment="negative",
        reasoning="",
        themes=list(themes or []),
        quote_worthy=quote_worthy,
        score=score,
        model=model,
        analyzed_at=analyzed_at,
    )


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def discovered_store(tmp_path):
    return JsonlStore(tmp_path / "discovered_urls.jsonl")


@pytest.fixture
def threads_store(tmp_path):
    return JsonlStore(tmp_path / "reddit_data.jsonl")


@pytest.fixture
def results_store(tmp_path):
    return JsonlStore(tmp_path / "sentiment_analysis.jsonl")


@pytest.fixture
def run_log_store(tmp_path):
    return JsonlStore(tmp_path / "logs" / "runs.jsonl")


@pytest.fixture
def comparison_thread():
    """Thread whose only tool-pair context runs through c1 -> c2.

    c1 (depth 0) names only Claude Code, c2 replies naming Codex, c3 replies
    with no tool name at all. c4 is a separate top-level chain naming only
    Claude Code. The title names neither tool.
    """
    return make_thread(
        post_id="p1",
        title="Which agent do you use?",
        comments=[
            make_reply("c1", None, 0, "Claude Code has been great for me", score=5),
            make_reply("c2", "c1", 1, "Codex is faster though", score=3),
            make_reply("c3", "c2", 2, "Agreed, much faster", score=7),
            make_reply("c4", None, 0, "I only use Claude Code", score=2),
        ],
    )
