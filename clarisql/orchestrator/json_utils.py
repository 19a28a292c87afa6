"""
Robust JSON extraction and parsing utilities for LLM responses.

PROBLEM
-------
LLMs often return valid JSON embedded in explanatory text or code fences:
    'Sure! ```json\n{"needs_clarification": false}\n``` Hope this helps!'

json.loads() fails on the whole string.

SOLUTION
--------
Always extract ONLY the first JSON value (object or array) before parsing,
then validate its shape with a pydantic model at the call site.
"""
import json
import re
from typing import Any, Optional, Tuple, Type

_FENCE_RE = re.compile(r'```(?:json)?\s*([\s\S]*?)\s*```', re.IGNORECASE)
_CLOSERS = {"{": "}", "[": "]"}


class JSONExtractionError(Exception):
    """Raised when no valid JSON value can be extracted."""
    pass


def _leftover(text: str, start: int, end: int) -> Optional[str]:
    before = text[:start].strip()
    after = text[end:].strip()
    return (before + " " + after).strip() if (before or after) else None


def extract_first_json_block(text: str, opener: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Extract the first balanced JSON object or array from LLM response text.

    Args:
        text: Raw LLM response (may contain JSON + commentary)
        opener: "{" or "[" to look for one kind only; None accepts whichever comes first

    Returns:
        Tuple of (json_string, stripped_text), stripped_text being whatever
        surrounded the JSON (None if nothing did)

    Raises:
        JSONExtractionError: If no balanced JSON value is found

    Examples:
        >>> extract_first_json_block('Analysis: {"a": 1} Done!')
        ('{"a": 1}', 'Analysis: Done!')

        >>> extract_first_json_block('[{"joinType": "LEFT JOIN"}]', opener="[")
        ('[{"joinType": "LEFT JOIN"}]', None)
    """
    if not text or not isinstance(text, str):
        raise JSONExtractionError("Input text is empty or not a string")

    text = text.strip()

    fence = _FENCE_RE.search(text)
    if fence:
        outside = _leftover(text, fence.start(), fence.end())
        inner, _ = extract_first_json_block(fence.group(1), opener)
        return inner, outside

    openers = [opener] if opener else list(_CLOSERS)
    positions = [text.find(o) for o in openers if text.find(o) != -1]
    if not positions:
        raise JSONExtractionError("No JSON value found (no opening bracket)")

    start_idx = min(positions)
    open_char = text[start_idx]
    close_char = _CLOSERS[open_char]

    depth = 0
    in_string = False
    escape_next = False
    end_idx = None

    for i in range(start_idx, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue
        if char == '\\':
            escape_next = True
            continue

        # Brackets inside strings don't count
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                end_idx = i + 1
                break

    if end_idx is None:
        raise JSONExtractionError("No matching closing bracket found (unbalanced JSON)")

    return text[start_idx:end_idx], _leftover(text, start_idx, end_idx)


def safe_parse_llm_json(text: str, expected: Type = dict) -> Tuple[Any, Optional[str]]:
    """
    Safely parse JSON from LLM response with robust error handling.

    Args:
        text: Raw LLM response
        expected: dict for a JSON object, list for a JSON array

    Returns:
        Tuple of (parsed_value, stripped_text)

    Raises:
        JSONExtractionError: If extraction or parsing fails, or the value has the wrong type

    Example:
        >>> result, stripped = safe_parse_llm_json('Here: {"status": "ok"}')
        >>> result
        {'status': 'ok'}
    """
    opener = "[" if expected is list else "{"
    json_str, stripped_text = extract_first_json_block(text, opener)

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise JSONExtractionError(
            f"Extracted text is not valid JSON: {e}\n"
            f"Extracted: {json_str[:200]}"
        )

    if not isinstance(parsed, expected):
        raise JSONExtractionError(
            f"Expected JSON {expected.__name__}, got {type(parsed).__name__}: {str(parsed)[:200]}"
        )

    return parsed, stripped_text
