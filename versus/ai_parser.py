"""Classifier response decoding and validation.

This module turns the classifier's free-form reply into a validated
ParsedClassification:

1. Strip markdown code fences (```json ... ```)
2. Recover the JSON object as the text between the first "{" and the last "}"
   (the model sometimes wraps the object in prose)
3. Parse and validate every field against the closed vocabulary

Validation Rules:
    - comparison: one of the 9 categories of the tool pair (case-insensitive)
    - <tool>Sentiment: one of positive / negative / neutral / n/a (case-insensitive)
    - reasoning: string (required)
    - themes: list of strings; blanks dropped, duplicates removed (optional, default [])
    - quoteWorthy: boolean (optional, default false)
    - quote: string or null (optional)
    - Extra fields: silently ignored

Errors:
    MalformedResponseError: no JSON object could be decoded
    ClassificationValidationError: a field is missing or outside its vocabulary
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from versus.errors import ClassificationValidationError, MalformedResponseError
from versus.tools import DEFAULT_TOOL_PAIR, SENTIMENT_VALUES, ToolPair


@dataclass
class ParsedClassification:
    comparison: str
    tool_a_sentiment: str
    tool_b_sentiment: str
    reasoning: str
    themes: List[str] = field(default_factory=list)
    quote_worthy: bool = False
    quote: Optional[str] = None


def strip_code_fences(raw_content: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if any."""
    stripped = raw_content.strip()

    if '```' not in stripped:
        return stripped

    start_fence = stripped.find('```')
    start_idx = stripped.find('\n', start_fence)
    if start_idx == -1:
        start_idx = start_fence + 3
    else:
        start_idx += 1

    end_idx = stripped.rfind('```')
    if end_idx > start_idx:
        return stripped[start_idx:end_idx].strip()
    return stripped[start_idx:].strip()


def extract_json_object(raw_content: str) -> str:
    """Return the substring from the first "{" to the last "}" (inclusive).

    Raises:
        MalformedResponseError: If the text holds no brace-delimited object
    """
    text = strip_code_fences(raw_content or "")
    first_brace = text.find('{')
    last_brace = text.rfind('}')

    if first_brace == -1 or last_brace == -1 or last_brace < first_brace:
        raise MalformedResponseError("No JSON object found in classifier response")

    return text[first_brace:last_brace + 1]


def _enum_value(data: Dict[str, Any], name: str, allowed) -> str:
    if name not in data:
        raise ClassificationValidationError(f"Missing required field: {name}")
    value = data[name]
    if not isinstance(value, str):
        raise ClassificationValidationError(f"{name} must be a string, got {type(value).__name__}")
    normalized = value.strip().lower()
    if normalized not in allowed:
        structlog.get_logger().warning("classifier_value_out_of_vocabulary", field=name, value=value)
        raise ClassificationValidationError(
            f"Invalid {name}: {value!r}. Must be one of {sorted(allowed)}"
        )
    return normalized


def _themes(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ClassificationValidationError(f"themes must be a list, got {type(value).__name__}")

    themes: List[str] = []
    for theme in value:
        if not isinstance(theme, str):
            raise ClassificationValidationError(f"themes must contain strings, got {type(theme).__name__}")
        theme = theme.strip()
        if theme and theme not in themes:
            themes.append(theme)
    return themes


def parse_classification_response(raw_content: str, pair: ToolPair = DEFAULT_TOOL_PAIR) -> ParsedClassification:
    """Decode and validate one classifier response.

    Args:
        raw_content: Raw model output (may include fences or surrounding prose)
        pair: Tool pair defining the category vocabulary and sentiment field names

    Returns:
        ParsedClassification with normalized (lowercase) enum values

    Raises:
        MalformedResponseError: If no JSON object can be decoded
        ClassificationValidationError: If a field is missing or invalid

    Examples:
        >>> parse_classification_response('Sure! {"comparison": "equal", ...}')
        ParsedClassification(comparison='equal', ...)
    """
    json_text = extract_json_object(raw_content)

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        structlog.get_logger().warning(
            "classifier_response_json_invalid",
            error=str(e),
            raw_content=(raw_content or "")[:200],
        )
        raise MalformedResponseError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")

    field_a, field_b = pair.sentiment_fields

    comparison = _enum_value(data, "comparison", set(pair.categories))
    tool_a_sentiment = _enum_value(data, field_a, set(SENTIMENT_VALUES))
    tool_b_sentiment = _enum_value(data, field_b, set(SENTIMENT_VALUES))

    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str):
        raise ClassificationValidationError("reasoning must be a string")

    quote_worthy = data.get("quoteWorthy", False)
    if quote_worthy is None:
        quote_worthy = False
    if not isinstance(quote_worthy, bool):
        raise ClassificationValidationError(
            f"quoteWorthy must be a boolean, got {type(quote_worthy).__name__}"
        )

    quote = data.get("quote")
    if quote is not None and not isinstance(quote, str):
        raise ClassificationValidationError(f"quote must be a string, got {type(quote).__name__}")
    if isinstance(quote, str) and not quote.strip():
        quote = None

    return ParsedClassification(
        comparison=comparison,
        tool_a_sentiment=tool_a_sentiment,
        tool_b_sentiment=tool_b_sentiment,
        reasoning=reasoning.strip(),
        themes=_themes(data.get("themes")),
        quote_worthy=quote_worthy,
        quote=quote,
    )
