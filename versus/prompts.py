"""
Prompt templates for classifying Reddit comments that compare two coding tools.

The system prompt fixes the closed vocabulary (9 comparison categories, 4 sentiment
values) and the JSON response shape; the user prompt carries the thread-context
blob and asks about the LAST comment in it.
"""

from versus.tools import DEFAULT_TOOL_PAIR, SENTIMENT_VALUES, ToolPair


def _category_descriptions(pair: ToolPair) -> str:
    a, b = pair.tool_a, pair.tool_b
    lines = [
        (f"{b.slug}_better", f"Direct comparison where {b.display_name} is preferred over {a.display_name}"),
        (f"{a.slug}_better", f"Direct comparison where {a.display_name} is preferred over {b.display_name}"),
        ("equal", "Rates both tools equally"),
        (f"{a.slug}_only_positive", f"Only discusses {a.display_name} with positive sentiment"),
        (f"{a.slug}_only_negative", f"Only discusses {a.display_name} with negative sentiment"),
        (f"{b.slug}_only_positive", f"Only discusses {b.display_name} with positive sentiment"),
        (f"{b.slug}_only_negative", f"Only discusses {b.display_name} with negative sentiment"),
        ("neither", "Discusses neither tool favorably"),
        ("off_topic", "Not actually comparing the tools (e.g. discussing other tools like Cursor or GLM)"),
    ]
    return "\n".join(f'   - "{name}": {description}' for name, description in lines)


def build_system_prompt(pair: ToolPair = DEFAULT_TOOL_PAIR) -> str:
    """System prompt with the closed vocabulary and response schema for ``pair``."""
    a, b = pair.tool_a, pair.tool_b
    field_a, field_b = pair.sentiment_fields
    categories = " | ".join(f'"{c}"' for c in pair.categories)
    sentiments = " | ".join(f'"{s}"' for s in SENTIMENT_VALUES)

    return f"""You are analyzing Reddit comments comparing {a.display_name} and {b.display_name} (AI coding tools).

You receive a discussion thread: the post, then a chain of comments where each comment replies to the one before it.
Analyze the LAST comment's sentiment toward {a.display_name} vs {b.display_name}, using the earlier comments only as context.

1. comparison: How does the comment compare the two tools? Exactly one of:
{_category_descriptions(pair)}
2. {field_a}: positive, negative, neutral, or n/a (if {a.display_name} is not discussed)
3. {field_b}: positive, negative, neutral, or n/a (if {b.display_name} is not discussed)
4. reasoning: Brief explanation (1-2 sentences)
5. themes: Specific aspects discussed (e.g. "speed", "accuracy", "UI", "pricing", "bugs")
6. quoteWorthy: Is this a substantive, quotable comparison? (true/false)
7. quote: If quoteWorthy, the most relevant 1-2 sentence quote from the comment

Respond with a single JSON object and nothing else:
{{
  "comparison": {categories},
  "{field_a}": {sentiments},
  "{field_b}": {sentiments},
  "reasoning": "...",
  "themes": ["...", "..."],
  "quoteWorthy": true | false,
  "quote": "..." (optional)
}}"""


def build_user_prompt(context_text: str) -> str:
    """User prompt carrying one thread-context blob."""
    return (
        f"{context_text}\n\n"
        "---\n\n"
        "Based on this discussion thread, classify the LAST comment. Respond in JSON."
    )


SYSTEM_PROMPT = build_system_prompt(DEFAULT_TOOL_PAIR)
