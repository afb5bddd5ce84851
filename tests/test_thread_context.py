"""
Tests for ancestry-chain construction and candidate eligibility.
"""

from versus.thread_context import (
    ancestry_chain,
    build_reply_index,
    build_thread_context,
    format_context,
    is_eligible,
)
from versus.tools import DEFAULT_TOOL_PAIR

from tests.conftest import make_reply, make_thread


class TestAncestryChain:

    def test_chain_length_and_depths(self):
        replies = [make_reply(f"c{d}", f"c{d - 1}" if d else None, d) for d in range(5)]
        index = build_reply_index(replies)

        for reply in replies:
            chain = ancestry_chain(reply, index)
            assert len(chain) == reply.depth + 1
            assert [r.depth for r in chain] == list(range(reply.depth + 1))
            assert chain[-1] is reply

    def test_only_the_ancestry_path_is_included(self, comparison_thread):
        index = build_reply_index(comparison_thread.comments)
        c3 = index["c3"]
        assert [r.id for r in ancestry_chain(c3, index)] == ["c1", "c2", "c3"]

    def test_orphan_truncates_chain(self):
        orphan = make_reply("x", "missing", 3)
        assert [r.id for r in ancestry_chain(orphan, {"x": orphan})] == ["x"]

    def test_cycle_terminates(self):
        a = make_reply("a", "b", 1)
        b = make_reply("b", "a", 1)
        chain = ancestry_chain(a, {"a": a, "b": b})
        assert sorted(r.id for r in chain) == ["a", "b"]


class TestFormatContext:

    def test_blob_layout(self):
        chain = [make_reply("c1", None, 0, "first", score=5), make_reply("c2", "c1", 1, "second", score=-2)]
        text = format_context("Title", "Body", chain)

        assert text == (
            "POST TITLE: Title\n\n"
            "POST BODY: Body\n\n"
            "COMMENT 1 (depth 0, score 5): first\n\n"
            "COMMENT 2 (depth 1, score -2): second"
        )

    def test_empty_body_omitted(self):
        assert "POST BODY" not in format_context("Title", "", [])


class TestEligibility:

    def test_tools_split_across_chain_are_eligible(self, comparison_thread):
        keywords = DEFAULT_TOOL_PAIR.keyword_filter()
        index = build_reply_index(comparison_thread.comments)

        context = build_thread_context(index["c3"], comparison_thread, index)

        assert context.target.id == "c3"
        assert is_eligible(context, keywords)

    def test_one_tool_chain_is_not_eligible(self, comparison_thread):
        keywords = DEFAULT_TOOL_PAIR.keyword_filter()
        c4 = comparison_thread.comments[3]

        assert not is_eligible(build_thread_context(c4, comparison_thread), keywords)

    def test_title_counts_toward_eligibility(self):
        thread = make_thread(title="Codex thread", comments=[make_reply("c1", None, 0, "claude code is better")])
        context = build_thread_context(thread.comments[0], thread)
        assert is_eligible(context, DEFAULT_TOOL_PAIR.keyword_filter())
