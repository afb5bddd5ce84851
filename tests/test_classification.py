"""
Tests for the classification stage.

Behavioral tests: candidate selection (dedup + eligibility), batch limits,
per-candidate failure isolation, result uniqueness across runs, and the
run-log line.
"""

from unittest.mock import AsyncMock, patch

import pytest

from versus.classification import (
    load_classified_keys,
    reply_permalink,
    run_classification,
    select_candidates,
)
from versus.errors import MalformedResponseError, PreconditionError
from versus.models.thread_models import ClassificationResult, RunLog
from versus.storage import JsonlStore
from versus.tools import DEFAULT_TOOL_PAIR

from tests.conftest import FakeClassifier, classifier_response, make_reply, make_thread


def _comparative_thread(post_id="p1", n=3):
    return make_thread(
        post_id=post_id,
        title="Claude Code vs Codex",
        comments=[make_reply(f"{post_id}c{i}", None, 0, f"comment {i}", score=i, post_id=post_id) for i in range(n)],
    )


def _results(store):
    return list(JsonlStore(store.path, ClassificationResult.from_record).scan())


async def _classify(threads_store, results_store, run_log_store, classifier, batch_size=500):
    return await run_classification(
        threads_store,
        results_store,
        run_log_store,
        classifier,
        "gpt-4o-mini",
        batch_size=batch_size,
        delay=0,
    )


class TestSelectCandidates:

    def test_one_tool_chain_never_selected(self, comparison_thread):
        candidates = select_candidates([comparison_thread], set(), DEFAULT_TOOL_PAIR.keyword_filter())
        assert [c.reply.id for c in candidates] == ["c2", "c3"]

    def test_classified_keys_are_skipped(self):
        thread = _comparative_thread()
        candidates = select_candidates([thread], {("p1", "p1c0")}, DEFAULT_TOOL_PAIR.keyword_filter())
        assert [c.reply.id for c in candidates] == ["p1c1", "p1c2"]

    def test_duplicate_thread_lines_yield_one_candidate(self):
        thread = _comparative_thread(n=1)
        candidates = select_candidates([thread, thread], set(), DEFAULT_TOOL_PAIR.keyword_filter())
        assert len(candidates) == 1

    def test_reply_permalink(self):
        assert reply_permalink("https://reddit.com/r/a/comments/p/x", "c1") == "https://reddit.com/r/a/comments/p/x/c1"
        assert reply_permalink("https://reddit.com/r/a/comments/p/x/", "c1") == "https://reddit.com/r/a/comments/p/x/c1"


class TestRunClassification:

    @pytest.mark.asyncio
    async def test_results_persisted_with_context_fields(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=1))
        classifier = FakeClassifier()

        run = await _classify(threads_store, results_store, run_log_store, classifier)

        result = _results(results_store)[0]
        assert result.comment_id == "p1c0"
        assert result.post_id == "p1"
        assert result.subreddit == "ClaudeCode"
        assert result.permalink.endswith("/comments/p1/slug/p1c0")
        assert result.comparison == "claude_code_better"
        assert result.model == "gpt-4o-mini"
        assert result.analyzed_at > 0
        assert run.results == [result]
        assert "COMMENT 1 (depth 0, score 0): comment 0" in classifier.calls[0]["user_prompt"]
        assert classifier.calls[0]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_batch_size_defers_the_rest(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=5))

        run = await _classify(threads_store, results_store, run_log_store, FakeClassifier(), batch_size=2)

        assert results_store.count() == 2
        assert run.deferred == 3
        assert run.candidates == 5

    @pytest.mark.asyncio
    async def test_reruns_never_duplicate_results(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=5))

        for _ in range(4):
            await _classify(threads_store, results_store, run_log_store, FakeClassifier(), batch_size=2)

        keys = [r.key for r in _results(results_store)]
        assert len(keys) == 5
        assert len(set(keys)) == 5

    @pytest.mark.asyncio
    async def test_failures_are_counted_and_skipped(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=4))
        classifier = FakeClassifier(responses=[
            classifier_response(),
            "no json here",
            classifier_response("cursor_better"),
            RuntimeError("rate limited"),
        ])

        run = await _classify(threads_store, results_store, run_log_store, classifier)

        assert [r.comment_id for r in _results(results_store)] == ["p1c0"]
        assert run.errors.count == 3
        assert run.errors.by_type() == {
            "MalformedResponseError": 1,
            "ClassificationValidationError": 1,
            "RuntimeError": 1,
        }
        assert run.run_log.errors == 3

    @pytest.mark.asyncio
    async def test_delay_follows_every_call_even_when_all_fail(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=5))
        classifier = FakeClassifier(responses=[RuntimeError("429 rate limited")] * 5)

        with patch("versus.classification.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            run = await run_classification(
                threads_store,
                results_store,
                run_log_store,
                classifier,
                "gpt-4o-mini",
                delay=0.5,
            )

        assert run.errors.count == 5
        assert mock_sleep.await_count == 5
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_failed_candidates_retried_next_run(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=2))
        await _classify(threads_store, results_store, run_log_store,
                        FakeClassifier(responses=[MalformedResponseError("x")]))

        run = await _classify(threads_store, results_store, run_log_store, FakeClassifier())

        assert [r.comment_id for r in run.results] == ["p1c0"]
        assert results_store.count() == 2

    @pytest.mark.asyncio
    async def test_every_persisted_category_is_in_vocabulary(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=len(DEFAULT_TOOL_PAIR.categories) + 1))
        responses = [classifier_response(c, "neutral", "neutral") for c in DEFAULT_TOOL_PAIR.categories]
        responses.append(classifier_response("claude_is_king"))

        await _classify(threads_store, results_store, run_log_store, FakeClassifier(responses=responses))

        comparisons = [r.comparison for r in _results(results_store)]
        assert len(comparisons) == len(DEFAULT_TOOL_PAIR.categories)
        assert set(comparisons) <= set(DEFAULT_TOOL_PAIR.categories)

    @pytest.mark.asyncio
    async def test_run_log_line(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=3))
        await _classify(threads_store, results_store, run_log_store, FakeClassifier(), batch_size=1)

        await _classify(threads_store, results_store, run_log_store, FakeClassifier(), batch_size=1)

        logs = list(JsonlStore(run_log_store.path, RunLog.from_record).scan())
        assert len(logs) == 2
        second = logs[1]
        assert second.already_analyzed == 1
        assert second.total_candidates == 3
        assert second.analyzed_this_run == 1
        assert second.input_tokens == 100
        assert second.output_tokens == 20
        assert second.batch_size == 1
        assert second.estimated_cost > 0

    @pytest.mark.asyncio
    async def test_token_estimate_when_usage_missing(self, threads_store, results_store, run_log_store):
        threads_store.append(_comparative_thread(n=1))
        classifier = FakeClassifier(usage={})

        run = await _classify(threads_store, results_store, run_log_store, classifier)

        assert run.run_log.input_tokens > 0
        assert run.run_log.output_tokens == 200

    @pytest.mark.asyncio
    async def test_missing_threads_file_is_fatal(self, threads_store, results_store, run_log_store):
        with pytest.raises(PreconditionError):
            await _classify(threads_store, results_store, run_log_store, FakeClassifier())
        assert not run_log_store.exists()

    def test_classified_keys_are_compound(self, results_store):
        results_store.append({"postId": "p1", "commentId": "c1", "comparison": "equal"})
        results_store.append({"commentId": "orphan"})
        assert load_classified_keys(results_store) == {("p1", "c1")}
