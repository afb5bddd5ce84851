"""Aggregation and filtering over classification results.

Everything here is in-memory and synchronous. A DashboardEngine holds the loaded
results plus an IgnoreSet and recomputes a complete DashboardSnapshot from a
FilterState on every call.

Filter cascade:
    active set -> subreddit -> theme -> category / model / quote-worthy

Theme counts come from the subreddit-filtered set so every theme stays visible
while a theme filter is active. Category statistics come from the theme-filtered
set; the listing applies the remaining filters on top of that.
"""

import json
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Union

import structlog

from versus.models.thread_models import ClassificationResult
from versus.tools import DEFAULT_TOOL_PAIR, GROUP_NEUTRAL, GROUP_UNCLEAR, ToolPair

logger = structlog.get_logger()

ALL = "all"

SORT_RECENCY = "recency"
SORT_POPULARITY = "popularity"
SORT_KEYS = (SORT_RECENCY, SORT_POPULARITY)

IGNORED_COMMENTS_KEY = "ignoredComments"
IGNORED_THREADS_KEY = "ignoredThreads"

TOP_THEMES = 10


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class MemoryKeyValueStore:
    """Dict-backed store, for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """One JSON object on disk; every set() rewrites the file before returning.

    A missing or unreadable file reads as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("key_value_store_unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Any:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)


class IgnoreSet:
    """Advisory exclusions by comment id and by thread id.

    Results are never deleted; ignored entries are only left out of the active
    set. Each toggle writes through to the injected store, keyed separately for
    comments and threads.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else MemoryKeyValueStore()
        self.comments: Set[str] = self._read(IGNORED_COMMENTS_KEY)
        self.threads: Set[str] = self._read(IGNORED_THREADS_KEY)

    def _read(self, key: str) -> Set[str]:
        value = self.store.get(key)
        if not isinstance(value, list):
            return set()
        return {str(item) for item in value}

    def _persist(self, key: str, values: Set[str]) -> None:
        self.store.set(key, sorted(values))

    @staticmethod
    def _flip(values: Set[str], item: str) -> bool:
        if item in values:
            values.discard(item)
            return False
        values.add(item)
        return True

    def toggle_comment(self, comment_id: str) -> bool:
        """Flip one comment's ignore flag. Returns True if it is now ignored."""
        ignored = self._flip(self.comments, comment_id)
        self._persist(IGNORED_COMMENTS_KEY, self.comments)
        logger.info("comment_ignore_toggled", comment_id=comment_id, ignored=ignored)
        return ignored

    def toggle_thread(self, post_id: str) -> bool:
        """Flip a whole thread's ignore flag. Returns True if it is now ignored."""
        ignored = self._flip(self.threads, post_id)
        self._persist(IGNORED_THREADS_KEY, self.threads)
        logger.info("thread_ignore_toggled", post_id=post_id, ignored=ignored)
        return ignored

    def is_ignored(self, result: ClassificationResult) -> bool:
        return result.comment_id in self.comments or result.post_id in self.threads

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "comments": sorted(self.comments),
            "threads": sorted(self.threads),
        }


def active_set(
    results: Iterable[ClassificationResult],
    ignored: IgnoreSet,
    include_ignored: bool = False,
) -> List[ClassificationResult]:
    if include_ignored:
        return list(results)
    return [r for r in results if not ignored.is_ignored(r)]


def filter_by_subreddit(results: Iterable[ClassificationResult], subreddit: str = ALL) -> List[ClassificationResult]:
    if not subreddit or subreddit == ALL:
        return list(results)
    return [r for r in results if r.subreddit == subreddit]


def filter_by_theme(results: Iterable[ClassificationResult], theme: str = ALL) -> List[ClassificationResult]:
    if not theme or theme == ALL:
        return list(results)
    return [r for r in results if theme in r.themes]


def filter_by_category(
    results: Iterable[ClassificationResult],
    category: str = ALL,
    pair: ToolPair = DEFAULT_TOOL_PAIR,
) -> List[ClassificationResult]:
    """Keep results in ``category``: one of the 9 categories, or a group alias.

    Raises:
        ValueError: If ``category`` is neither "all", a category, nor a group alias
    """
    if not category or category == ALL:
        return list(results)

    groups = pair.preference_groups()
    if category in groups:
        members = groups[category]
    elif category in pair.categories:
        members = frozenset({category})
    else:
        raise ValueError(
            f"Unknown category filter: {category!r}. "
            f"Must be 'all', one of {list(pair.categories)}, or one of {list(groups)}"
        )
    return [r for r in results if r.comparison in members]


def filter_by_model(results: Iterable[ClassificationResult], model: str = ALL) -> List[ClassificationResult]:
    if not model or model == ALL:
        return list(results)
    return [r for r in results if r.model == model]


def filter_quote_worthy(results: Iterable[ClassificationResult], quote_worthy_only: bool = False) -> List[ClassificationResult]:
    if not quote_worthy_only:
        return list(results)
    return [r for r in results if r.quote_worthy]


def _weight(result: ClassificationResult, use_weights: bool) -> int:
    if not use_weights:
        return 1
    return result.score or 0


def counts_by_category(
    results: Iterable[ClassificationResult],
    pair: ToolPair = DEFAULT_TOOL_PAIR,
) -> Dict[str, Dict[str, int]]:
    """Every category mapped to {count, score}; categories with no results are 0."""
    counts = {category: {"count": 0, "score": 0} for category in pair.categories}
    for r in results:
        entry = counts.get(r.comparison)
        if entry is None:
            continue
        entry["count"] += 1
        entry["score"] += r.score or 0
    return counts


@dataclass
class PreferenceBreakdown:
    """Clear-preference view for one filtered set.

    Values are counts, or summed scores when ``weighted``. ``tool_a_percentage``
    and ``tool_b_percentage`` are shares of tool_a + tool_b only (0 when both are 0).
    """
    tool_a: int
    tool_b: int
    neutral: int
    unclear: int
    total: int
    tool_a_percentage: float
    tool_b_percentage: float
    weighted: bool = False

    def to_dict(self, pair: ToolPair = DEFAULT_TOOL_PAIR) -> Dict[str, Any]:
        a, b = pair.tool_a.slug, pair.tool_b.slug
        return {
            a: self.tool_a,
            b: self.tool_b,
            GROUP_NEUTRAL: self.neutral,
            GROUP_UNCLEAR: self.unclear,
            "total": self.total,
            f"{a}_percentage": self.tool_a_percentage,
            f"{b}_percentage": self.tool_b_percentage,
            "weighted": self.weighted,
        }


def preference_breakdown(
    results: Iterable[ClassificationResult],
    use_weights: bool = False,
    pair: ToolPair = DEFAULT_TOOL_PAIR,
) -> PreferenceBreakdown:
    totals = {group: 0 for group in pair.preference_groups()}
    total = 0
    for r in results:
        weight = _weight(r, use_weights)
        totals[pair.group_of(r.comparison)] += weight
        total += weight

    tool_a = totals[pair.tool_a.slug]
    tool_b = totals[pair.tool_b.slug]
    clear = tool_a + tool_b

    return PreferenceBreakdown(
        tool_a=tool_a,
        tool_b=tool_b,
        neutral=totals[GROUP_NEUTRAL],
        unclear=totals[GROUP_UNCLEAR],
        total=total,
        tool_a_percentage=round(tool_a / clear * 100, 1) if clear else 0.0,
        tool_b_percentage=round(tool_b / clear * 100, 1) if clear else 0.0,
        weighted=use_weights,
    )


def sort_view(results: Iterable[ClassificationResult], by: str = SORT_RECENCY) -> List[ClassificationResult]:
    """Stable descending sort by analysis time or by score.

    Raises:
        ValueError: If ``by`` is not "recency" or "popularity"
    """
    if by == SORT_RECENCY:
        return sorted(results, key=lambda r: r.analyzed_at or 0, reverse=True)
    if by == SORT_POPULARITY:
        return sorted(results, key=lambda r: r.score or 0, reverse=True)
    raise ValueError(f"Unknown sort key: {by!r}. Must be one of {list(SORT_KEYS)}")


def subreddit_counts(results: Iterable[ClassificationResult]) -> Dict[str, int]:
    counter = Counter(r.subreddit for r in results)
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


def theme_counts(results: Iterable[ClassificationResult], top: Optional[int] = TOP_THEMES) -> Dict[str, int]:
    counter: Counter = Counter()
    for r in results:
        counter.update(set(r.themes))
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    if top is not None:
        ranked = ranked[:top]
    return dict(ranked)


def model_counts(results: Iterable[ClassificationResult]) -> Dict[str, int]:
    counter = Counter(r.model for r in results)
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


@dataclass
class FilterState:
    subreddit: str = ALL
    theme: str = ALL
    category: str = ALL
    model: str = ALL
    quote_worthy_only: bool = False
    sort: str = SORT_RECENCY
    weighted: bool = False
    include_ignored: bool = False


@dataclass
class DashboardSnapshot:
    """Everything the dashboard shows for one FilterState."""
    filters: FilterState
    total_results: int
    active_count: int
    ignored_count: int
    subreddits: Dict[str, int]
    themes: Dict[str, int]
    models: Dict[str, int]
    categories: Dict[str, Dict[str, int]]
    preference: PreferenceBreakdown
    quote_worthy_count: int
    results: List[ClassificationResult] = field(default_factory=list)


class DashboardEngine:
    """Loaded results plus ignore state; recomputes snapshots from scratch."""

    def __init__(
        self,
        results: Iterable[ClassificationResult],
        ignored: Optional[IgnoreSet] = None,
        pair: ToolPair = DEFAULT_TOOL_PAIR,
    ):
        self.results: List[ClassificationResult] = list(results)
        self.ignored = ignored if ignored is not None else IgnoreSet()
        self.pair = pair

    def replace_results(self, results: Iterable[ClassificationResult]) -> None:
        self.results = list(results)
        logger.info("dashboard_results_replaced", results=len(self.results))

    def snapshot(self, filters: Optional[FilterState] = None) -> DashboardSnapshot:
        """Apply the full filter cascade to the loaded results.

        Raises:
            ValueError: For an unknown category or sort key
        """
        filters = filters or FilterState()

        active = active_set(self.results, self.ignored, filters.include_ignored)
        by_subreddit = filter_by_subreddit(active, filters.subreddit)
        by_theme = filter_by_theme(by_subreddit, filters.theme)

        listing = filter_by_category(by_theme, filters.category, self.pair)
        listing = filter_by_model(listing, filters.model)
        listing = filter_quote_worthy(listing, filters.quote_worthy_only)

        ignored_count = sum(1 for r in self.results if self.ignored.is_ignored(r))

        return DashboardSnapshot(
            filters=filters,
            total_results=len(self.results),
            active_count=len(active),
            ignored_count=ignored_count,
            subreddits=subreddit_counts(active),
            themes=theme_counts(by_subreddit),
            models=model_counts(by_theme),
            categories=counts_by_category(by_theme, self.pair),
            preference=preference_breakdown(by_theme, filters.weighted, self.pair),
            quote_worthy_count=sum(1 for r in by_theme if r.quote_worthy),
            results=sort_view(listing, filters.sort),
        )
