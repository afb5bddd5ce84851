"""Classification stage: tag comparative replies with the classifier.

Enumerates every reply of every scraped thread, drops replies already classified,
builds each remaining reply's ancestry context, and keeps the replies whose context
mentions both tools. The first ``batch_size`` candidates are classified one at a
time; the rest wait for the next run. Each result is appended as soon as it is
parsed, and one RunLog line summarizes the run.

Key Functions:
    load_threads: read ThreadRecords, failing fast if the input is missing
    select_candidates: unclassified, eligible replies in encounter order
    classify_candidate: one classifier call -> ClassificationResult
    run_classification: the batch loop with error counting and run accounting
"""

import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple

import structlog

from versus.ai_client import OpenAIClient
from versus.ai_parser import parse_classification_response
from versus.errors import STAGE_CLASSIFY, PreconditionError, StageErrors
from versus.models.thread_models import ClassificationResult, ReplyRecord, RunLog, ThreadRecord
from versus.prompts import build_system_prompt, build_user_prompt
from versus.storage import JsonlStore
from versus.thread_context import ThreadContext, build_reply_index, build_thread_context, is_eligible
from versus.tools import DEFAULT_TOOL_PAIR, KeywordFilter, ToolPair

logger = structlog.get_logger()

# Fallback estimates when the classifier reports no usage
AVG_OUTPUT_TOKENS = 200
CHARS_PER_TOKEN = 4

PROGRESS_EVERY = 10


class Classifier(Protocol):
    async def send_chat_completion(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> Dict[str, Any]:
        ...


@dataclass
class Candidate:
    thread: ThreadRecord
    reply: ReplyRecord
    context: ThreadContext

    @property
    def key(self) -> Tuple[str, str]:
        return (self.thread.post_id, self.reply.id)


@dataclass
class ClassificationRun:
    """Outcome of one classification invocation."""
    run_log: RunLog
    errors: StageErrors
    candidates: int = 0
    deferred: int = 0
    results: List[ClassificationResult] = field(default_factory=list)


def load_threads(store: JsonlStore) -> List[ThreadRecord]:
    """Load every well-formed ThreadRecord.

    Raises:
        PreconditionError: If the threads file does not exist
    """
    if not store.exists():
        raise PreconditionError(f"{store.path} not found. Run the scrape stage first.")
    return list(JsonlStore(store.path, ThreadRecord.from_record).scan())


def load_classified_keys(store: JsonlStore) -> Set[Tuple[str, str]]:
    """(postId, commentId) of every result already persisted."""
    return store.existing_keys(
        lambda record: (str(record["postId"]), str(record["commentId"]))
        if "postId" in record and "commentId" in record else None
    )


def reply_permalink(thread_permalink: str, comment_id: str) -> str:
    base = thread_permalink if thread_permalink.endswith("/") else f"{thread_permalink}/"
    return f"{base}{comment_id}"


def select_candidates(
    threads: Iterable[ThreadRecord],
    classified: Set[Tuple[str, str]],
    keywords: KeywordFilter,
) -> List[Candidate]:
    """Every unclassified reply whose ancestry context satisfies ``keywords``.

    Order is thread order, then reply order within the thread. A (postId, id)
    key is yielded at most once even if a thread appears twice in the input.
    """
    candidates: List[Candidate] = []
    seen = set(classified)

    for thread in threads:
        index = build_reply_index(thread.comments)
        for reply in thread.comments:
            key = (thread.post_id, reply.id)
            if key in seen:
                continue

            context = build_thread_context(reply, thread, index)
            if not is_eligible(context, keywords):
                continue

            seen.add(key)
            candidates.append(Candidate(thread=thread, reply=reply, context=context))

    return candidates


async def classify_candidate(
    candidate: Candidate,
    classifier: Classifier,
    model: str,
    pair: ToolPair = DEFAULT_TOOL_PAIR,
    system_prompt: Optional[str] = None,
) -> Tuple[ClassificationResult, Dict[str, int]]:
    """Classify one candidate.

    Returns:
        (ClassificationResult, usage) where usage has prompt_tokens and completion_tokens;
        zero counts are replaced by the length-based estimate

    Raises:
        MalformedResponseError, ClassificationValidationError: Undecodable or invalid output
        Exception: Whatever the classifier raises (network, rate limit)
    """
    response = await classifier.send_chat_completion(
        system_prompt or build_system_prompt(pair),
        build_user_prompt(candidate.context.full_text),
        model=model,
    )

    parsed = parse_classification_response(response.get("content", ""), pair)

    usage = response.get("usage") or {}
    prompt_tokens = usage.get("prompt_tokens") or math.ceil(len(candidate.context.full_text) / CHARS_PER_TOKEN)
    completion_tokens = usage.get("completion_tokens") or AVG_OUTPUT_TOKENS

    result = ClassificationResult(
        comment_id=candidate.reply.id,
        post_id=candidate.thread.post_id,
        subreddit=candidate.thread.subreddit,
        permalink=reply_permalink(candidate.thread.permalink, candidate.reply.id),
        comparison=parsed.comparison,
        tool_a_sentiment=parsed.tool_a_sentiment,
        tool_b_sentiment=parsed.tool_b_sentiment,
        reasoning=parsed.reasoning,
        themes=parsed.themes,
        quote_worthy=parsed.quote_worthy,
        quote=parsed.quote,
        score=candidate.reply.score,
        model=model,
        analyzed_at=int(time.time() * 1000),
    )
    return result, {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens}


async def run_classification(
    threads_store: JsonlStore,
    results_store: JsonlStore,
    run_log_store: JsonlStore,
    classifier: Classifier,
    model: str,
    batch_size: int = 500,
    delay: float = 0.1,
    pair: ToolPair = DEFAULT_TOOL_PAIR,
    keywords: Optional[KeywordFilter] = None,
) -> ClassificationRun:
    """Classify the next batch of candidates and append a RunLog entry.

    Candidates are processed sequentially. Any failure for one candidate is
    logged, counted, and the loop continues; nothing is retried within the run.

    Args:
        threads_store: ThreadRecord input
        results_store: ClassificationResult output (also the dedup source)
        run_log_store: RunLog output
        classifier: Capability exposing send_chat_completion
        model: Model identifier recorded on results and in the run log
        batch_size: Maximum candidates classified in this run
        delay: Seconds to sleep after every classifier call, failed or not
        pair: Tool pair defining vocabulary and field names
        keywords: Eligibility predicate (default: the pair's keyword filter)

    Returns:
        ClassificationRun with the RunLog, errors, and the new results

    Raises:
        PreconditionError: If the threads file does not exist
    """
    keywords = keywords or pair.keyword_filter()
    threads = load_threads(threads_store)
    classified = load_classified_keys(results_store)

    candidates = select_candidates(threads, classified, keywords)
    batch = candidates[:batch_size]

    logger.info(
        "classification_started",
        threads=len(threads),
        candidates=len(candidates),
        already_analyzed=len(classified),
        batch=len(batch),
        model=model,
    )

    errors = StageErrors(STAGE_CLASSIFY)
    system_prompt = build_system_prompt(pair)
    results: List[ClassificationResult] = []
    input_tokens = 0
    output_tokens = 0
    started = time.monotonic()

    for candidate in batch:
        try:
            result, usage = await classify_candidate(candidate, classifier, model, pair, system_prompt)
        except Exception as e:
            logger.error(
                "classification_failed",
                comment_id=candidate.reply.id,
                post_id=candidate.thread.post_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            errors.append(candidate.reply.id, e, {"post_id": candidate.thread.post_id})
        else:
            results_store.append(result.to_record(pair))
            results.append(result)
            input_tokens += usage["prompt_tokens"]
            output_tokens += usage["completion_tokens"]

            logger.debug(
                "reply_classified",
                comment_id=result.comment_id,
                post_id=result.post_id,
                comparison=result.comparison,
            )

            if len(results) % PROGRESS_EVERY == 0:
                elapsed = time.monotonic() - started
                rate = len(results) / elapsed if elapsed > 0 else 0.0
                logger.info(
                    "classification_progress",
                    analyzed=len(results),
                    batch=len(batch),
                    rate_per_second=round(rate, 2),
                )

        await asyncio.sleep(delay)

    elapsed = time.monotonic() - started

    run_log = RunLog(
        timestamp=int(time.time() * 1000),
        model=model,
        total_candidates=len(candidates) + len(classified),
        already_analyzed=len(classified),
        analyzed_this_run=len(results),
        errors=errors.count,
        time_seconds=round(elapsed),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        estimated_cost=OpenAIClient.estimate_cost(input_tokens, output_tokens),
        batch_size=batch_size,
    )
    run_log_store.append(run_log)

    logger.info(
        "classification_complete",
        analyzed=len(results),
        errors=errors.count,
        deferred=len(candidates) - len(batch),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        estimated_cost=round(run_log.estimated_cost, 4),
    )

    return ClassificationRun(
        run_log=run_log,
        errors=errors,
        candidates=len(candidates),
        deferred=len(candidates) - len(batch),
        results=results,
    )
