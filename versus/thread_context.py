"""Thread-context construction for classification.

A reply is never classified on its own: the classifier sees the post plus the
ancestry chain from the top-level comment down to the reply. Only that path is
included, not sibling branches, so context size is bounded by depth rather than
by how wide the thread is.

Key Functions:
    build_reply_index: id -> ReplyRecord lookup for one thread
    ancestry_chain: root-to-target replies for one reply
    build_thread_context: the ThreadContext (chain + text blob) sent to the classifier
    is_eligible: whether a context mentions every required term group
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import structlog

from versus.models.thread_models import ReplyRecord, ThreadRecord
from versus.tools import KeywordFilter

logger = structlog.get_logger()


@dataclass
class ThreadContext:
    """Ancestry context for one reply.

    Attributes:
        post_title: Thread title
        post_body: Thread body ("" for link posts)
        chain: Replies from the top-level comment to the target, inclusive;
            chain[i].depth == i for an intact chain
        full_text: The blob sent to the classifier
    """
    post_title: str
    post_body: str
    chain: List[ReplyRecord] = field(default_factory=list)
    full_text: str = ""

    @property
    def target(self) -> Optional[ReplyRecord]:
        return self.chain[-1] if self.chain else None


def build_reply_index(replies: Iterable[ReplyRecord]) -> Dict[str, ReplyRecord]:
    return {reply.id: reply for reply in replies}


def ancestry_chain(reply: ReplyRecord, index: Dict[str, ReplyRecord]) -> List[ReplyRecord]:
    """Walk parent links from ``reply`` up to its top-level ancestor.

    The chain stops early when a parent id is not in ``index`` (orphaned reply)
    or when an id repeats (corrupt parent links).

    Returns:
        Replies in root-to-target order, ending with ``reply`` itself
    """
    chain: List[ReplyRecord] = []
    seen = set()
    current: Optional[ReplyRecord] = reply

    while current is not None and current.id not in seen:
        chain.append(current)
        seen.add(current.id)
        if current.parent_id is None:
            break

        parent = index.get(current.parent_id)
        if parent is None:
            logger.debug(
                "orphaned_reply_chain_truncated",
                comment_id=reply.id,
                missing_parent_id=current.parent_id,
            )
        current = parent

    chain.reverse()
    return chain


def format_context(post_title: str, post_body: str, chain: List[ReplyRecord]) -> str:
    """Render the classifier blob: title, optional body, then each chain reply."""
    parts = [f"POST TITLE: {post_title}"]
    if post_body:
        parts.append(f"POST BODY: {post_body}")
    for position, reply in enumerate(chain, 1):
        parts.append(f"COMMENT {position} (depth {reply.depth}, score {reply.score}): {reply.text}")
    return "\n\n".join(parts)


def build_thread_context(
    reply: ReplyRecord,
    thread: ThreadRecord,
    index: Optional[Dict[str, ReplyRecord]] = None,
) -> ThreadContext:
    """Build the ancestry context for ``reply`` within ``thread``.

    Args:
        reply: Target reply
        thread: Thread the reply belongs to
        index: Prebuilt reply index for the thread (built on demand if omitted;
            pass it when building contexts for many replies of one thread)
    """
    if index is None:
        index = build_reply_index(thread.comments)

    chain = ancestry_chain(reply, index)
    return ThreadContext(
        post_title=thread.title,
        post_body=thread.selftext,
        chain=chain,
        full_text=format_context(thread.title, thread.selftext, chain),
    )


def is_eligible(context: ThreadContext, keywords: KeywordFilter) -> bool:
    """A reply is a classification candidate only if its context names every tool."""
    return keywords.matches(context.full_text)
