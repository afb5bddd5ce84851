"""The compared tool pair and everything derived from it.

Comparison categories, sentiment field names, the preference groups used by the
dashboard, and the keyword predicate shared by discovery and classification all
come from a single ToolPair so the two tools are named in exactly one place.

Default pair: Claude Code (tool A) vs Codex (tool B).
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple


SENTIMENT_VALUES: Tuple[str, ...] = ("positive", "negative", "neutral", "n/a")

GROUP_NEUTRAL = "neutral"
GROUP_UNCLEAR = "unclear"

CATEGORY_EQUAL = "equal"
CATEGORY_NEITHER = "neither"
CATEGORY_OFF_TOPIC = "off_topic"


def _camel(slug: str) -> str:
    head, *rest = slug.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class Tool:
    """One side of the comparison.

    Attributes:
        slug: snake_case identifier used in category names (e.g. "claude_code")
        display_name: Human-readable name used in prompts (e.g. "Claude Code")
        aliases: Lowercase spellings that count as a mention of the tool
    """
    slug: str
    display_name: str
    aliases: Tuple[str, ...]

    @property
    def sentiment_field(self) -> str:
        """Wire name of this tool's sentiment field, e.g. "claudeCodeSentiment"."""
        return f"{_camel(self.slug)}Sentiment"

    def mentioned_in(self, text: str) -> bool:
        lowered = text.lower()
        return any(alias in lowered for alias in self.aliases)


@dataclass(frozen=True)
class ToolPair:
    tool_a: Tool
    tool_b: Tool

    @property
    def categories(self) -> Tuple[str, ...]:
        """The 9 comparison categories, in the order the classifier prompt lists them."""
        a, b = self.tool_a.slug, self.tool_b.slug
        return (
            f"{b}_better",
            f"{a}_better",
            CATEGORY_EQUAL,
            f"{a}_only_positive",
            f"{a}_only_negative",
            f"{b}_only_positive",
            f"{b}_only_negative",
            CATEGORY_NEITHER,
            CATEGORY_OFF_TOPIC,
        )

    def preference_groups(self) -> Dict[str, FrozenSet[str]]:
        """Coarse groups for the clear-preference view.

        A comment that only talks about one tool counts toward that tool,
        whether the sentiment is positive or negative.
        """
        a, b = self.tool_a.slug, self.tool_b.slug
        return {
            a: frozenset({f"{a}_better", f"{a}_only_positive", f"{a}_only_negative"}),
            b: frozenset({f"{b}_better", f"{b}_only_positive", f"{b}_only_negative"}),
            GROUP_NEUTRAL: frozenset({CATEGORY_EQUAL}),
            GROUP_UNCLEAR: frozenset({CATEGORY_NEITHER, CATEGORY_OFF_TOPIC}),
        }

    def group_of(self, category: str) -> str:
        for group, members in self.preference_groups().items():
            if category in members:
                return group
        return GROUP_UNCLEAR

    @property
    def sentiment_fields(self) -> Tuple[str, str]:
        return (self.tool_a.sentiment_field, self.tool_b.sentiment_field)

    def keyword_filter(self) -> "KeywordFilter":
        return KeywordFilter([self.tool_a.aliases, self.tool_b.aliases])


@dataclass(frozen=True)
class KeywordFilter:
    """Case-insensitive predicate requiring every term group to appear.

    Each group is a set of interchangeable spellings; a text matches when, for
    every group, at least one spelling occurs as a substring.

    Example:
        >>> f = KeywordFilter([("claude code", "claude-code"), ("codex",)])
        >>> f.matches("Claude Code vs Codex thoughts")
        True
        >>> f.matches("I love Claude Code")
        False
    """
    groups: Sequence[Sequence[str]] = field(default_factory=list)

    @classmethod
    def from_terms(cls, terms: Iterable[str]) -> "KeywordFilter":
        """Build a filter where each term is its own required group."""
        return cls([(term.lower(),) for term in terms])

    def matches(self, text: str) -> bool:
        lowered = (text or "").lower()
        return all(
            any(term.lower() in lowered for term in group)
            for group in self.groups
        )

    def describe(self) -> List[str]:
        return [" / ".join(group) for group in self.groups]


CLAUDE_CODE = Tool(slug="claude_code", display_name="Claude Code", aliases=("claude code", "claude-code"))
CODEX = Tool(slug="codex", display_name="Codex", aliases=("codex",))

DEFAULT_TOOL_PAIR = ToolPair(tool_a=CLAUDE_CODE, tool_b=CODEX)
