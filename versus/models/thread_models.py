"""Record types for the versus pipeline.

This module defines the records that flow between the pipeline stages. Every record is
persisted as one JSON object per line, using camelCase wire names; the dataclasses
use snake_case attributes and convert with to_record() / from_record().

Data Models:
    DiscoveredReference: a thread found by discovery (key: url)
    ReplyRecord: one flattened comment, parent-linked (key: post_id + id)
    ThreadRecord: a scraped thread with all of its replies (key: post_id)
    ClassificationResult: the classifier's verdict for one reply (key: post_id + comment_id)
    RunLog: audit entry written once per classification run

from_record() raises KeyError, TypeError or ValueError when a line is valid JSON but
not a valid record; the record store treats those lines as malformed and skips them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from versus.tools import DEFAULT_TOOL_PAIR, ToolPair


REDDIT_API_QUERY = "reddit_api"


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


@dataclass
class DiscoveredReference:
    """A candidate thread found by discovery, without its comments.

    Attributes:
        url: Canonical permalink (https://reddit.com/r/.../comments/<id>/...), unique key
        title: Post title
        snippet: First 200 characters of the post body
        discovered_at: Epoch milliseconds when discovery recorded it
        query: Discovery channel ("reddit_api" for subreddit listings)
        subreddit: Subreddit the post was listed in
        score: Post score at discovery time
        created: Post creation time, epoch seconds
    """
    url: str
    title: str
    snippet: str
    discovered_at: int
    query: str
    subreddit: Optional[str] = None
    score: Optional[int] = None
    created: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "snippet": self.snippet,
            "discoveredAt": self.discovered_at,
            "query": self.query,
        }
        if self.subreddit is not None:
            record["subreddit"] = self.subreddit
        if self.score is not None:
            record["score"] = self.score
        if self.created is not None:
            record["created"] = self.created
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "DiscoveredReference":
        url = record["url"]
        if not isinstance(url, str) or not url:
            raise ValueError("url must be a non-empty string")
        return cls(
            url=url,
            title=str(record.get("title", "")),
            snippet=str(record.get("snippet", "")),
            discovered_at=int(record.get("discoveredAt", 0)),
            query=str(record.get("query", "")),
            subreddit=record.get("subreddit"),
            score=_optional_int(record.get("score")),
            created=_optional_int(record.get("created")),
        )


@dataclass
class ReplyRecord:
    """A single comment, flattened out of the thread's reply tree.

    Attributes:
        id: Reddit comment id (no t1_ prefix)
        parent_id: Parent comment id, or None for a direct reply to the post
        post_id: Id of the thread this reply belongs to
        depth: Distance from the post (0 = top-level); always parent.depth + 1
        text: Comment body
        score: Comment score
        author: Author name, "[deleted]" when unavailable
        created: Creation time, epoch seconds
    """
    id: str
    parent_id: Optional[str]
    post_id: str
    depth: int
    text: str
    score: int
    author: str
    created: int

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parentId": self.parent_id,
            "postId": self.post_id,
            "depth": self.depth,
            "text": self.text,
            "score": self.score,
            "author": self.author,
            "created": self.created,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ReplyRecord":
        return cls(
            id=str(record["id"]),
            parent_id=record.get("parentId"),
            post_id=str(record["postId"]),
            depth=int(record["depth"]),
            text=str(record.get("text", "")),
            score=int(record.get("score") or 0),
            author=str(record.get("author", "[deleted]")),
            created=int(record.get("created") or 0),
        )


@dataclass
class ThreadRecord:
    """A scraped thread: post fields plus every surviving reply in pre-order.

    Attributes:
        post_id: Reddit post id, unique key
        subreddit: Subreddit display name
        title: Post title
        selftext: Post body ("" for link posts)
        score: Post score
        url: Link target of the post
        permalink: https://reddit.com permalink of the thread
        author: Author name, "[deleted]" when unavailable
        created: Creation time, epoch seconds
        num_comments: Comment count reported by Reddit
        comments: Flattened replies, parents always before their children
    """
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
    comments: List[ReplyRecord] = field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        return {
            "postId": self.post_id,
            "subreddit": self.subreddit,
            "title": self.title,
            "selftext": self.selftext,
            "score": self.score,
            "url": self.url,
            "permalink": self.permalink,
            "author": self.author,
            "created": self.created,
            "numComments": self.num_comments,
            "comments": [reply.to_record() for reply in self.comments],
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ThreadRecord":
        comments = record.get("comments") or []
        if not isinstance(comments, list):
            raise TypeError("comments must be a list")
        return cls(
            post_id=str(record["postId"]),
            subreddit=str(record.get("subreddit", "")),
            title=str(record.get("title", "")),
            selftext=str(record.get("selftext") or ""),
            score=int(record.get("score") or 0),
            url=str(record.get("url", "")),
            permalink=str(record.get("permalink", "")),
            author=str(record.get("author", "[deleted]")),
            created=int(record.get("created") or 0),
            num_comments=int(record.get("numComments") or 0),
            comments=[ReplyRecord.from_record(c) for c in comments],
        )


@dataclass
class ClassificationResult:
    """The classifier's verdict on one reply, read in the context of its ancestry.

    Attributes:
        comment_id: Classified reply id
        post_id: Thread id
        subreddit: Subreddit of the thread
        permalink: Direct link to the reply
        comparison: One of the 9 comparison categories
        tool_a_sentiment: positive / negative / neutral / n/a toward tool A
        tool_b_sentiment: positive / negative / neutral / n/a toward tool B
        reasoning: One or two sentence explanation
        themes: Aspects discussed ("speed", "pricing", ...)
        quote_worthy: Whether the reply is a substantive, quotable comparison
        quote: Extracted quote when quote_worthy
        score: Reply score copied at classification time
        model: Classifier model identifier
        analyzed_at: Epoch milliseconds
    """
    comment_id: str
    post_id: str
    subreddit: str
    permalink: str
    comparison: str
    tool_a_sentiment: str
    tool_b_sentiment: str
    reasoning: str
    themes: List[str]
    quote_worthy: bool
    score: int
    model: str
    analyzed_at: int
    quote: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.post_id, self.comment_id)

    def to_record(self, pair: ToolPair = DEFAULT_TOOL_PAIR) -> Dict[str, Any]:
        field_a, field_b = pair.sentiment_fields
        record: Dict[str, Any] = {
            "commentId": self.comment_id,
            "postId": self.post_id,
            "subreddit": self.subreddit,
            "permalink": self.permalink,
            "comparison": self.comparison,
            field_a: self.tool_a_sentiment,
            field_b: self.tool_b_sentiment,
            "reasoning": self.reasoning,
            "themes": list(self.themes),
            "quoteWorthy": self.quote_worthy,
            "score": self.score,
            "model": self.model,
            "analyzedAt": self.analyzed_at,
        }
        if self.quote is not None:
            record["quote"] = self.quote
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any], pair: ToolPair = DEFAULT_TOOL_PAIR) -> "ClassificationResult":
        field_a, field_b = pair.sentiment_fields
        themes = record.get("themes") or []
        if not isinstance(themes, list):
            raise TypeError("themes must be a list")
        return cls(
            comment_id=str(record["commentId"]),
            post_id=str(record["postId"]),
            subreddit=str(record.get("subreddit") or "unknown"),
            permalink=str(record.get("permalink", "")),
            comparison=str(record["comparison"]),
            tool_a_sentiment=str(record.get(field_a, "n/a")),
            tool_b_sentiment=str(record.get(field_b, "n/a")),
            reasoning=str(record.get("reasoning", "")),
            themes=[str(t) for t in themes],
            quote_worthy=bool(record.get("quoteWorthy", False)),
            score=int(record.get("score") or 0),
            model=str(record.get("model") or "unknown"),
            analyzed_at=int(record.get("analyzedAt") or 0),
            quote=record.get("quote"),
        )


@dataclass
class RunLog:
    """Audit entry for one classification invocation (logs/runs.jsonl)."""
    timestamp: int
    model: str
    total_candidates: int
    already_analyzed: int
    analyzed_this_run: int
    errors: int
    time_seconds: int
    input_tokens: int
    output_tokens: int
    estimated_cost: float
    batch_size: int

    def to_record(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "model": self.model,
            "totalCandidates": self.total_candidates,
            "alreadyAnalyzed": self.already_analyzed,
            "analyzedThisRun": self.analyzed_this_run,
            "errors": self.errors,
            "timeSeconds": self.time_seconds,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "estimatedCost": self.estimated_cost,
            "batchSize": self.batch_size,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "RunLog":
        return cls(
            timestamp=int(record["timestamp"]),
            model=str(record["model"]),
            total_candidates=int(record["totalCandidates"]),
            already_analyzed=int(record["alreadyAnalyzed"]),
            analyzed_this_run=int(record["analyzedThisRun"]),
            errors=int(record["errors"]),
            time_seconds=int(record["timeSeconds"]),
            input_tokens=int(record["inputTokens"]),
            output_tokens=int(record["outputTokens"]),
            estimated_cost=float(record["estimatedCost"]),
            batch_size=int(record["batchSize"]),
        )
