"""
Best-effort JSON recovery from free-text model output.

Models asked for "only JSON" still wrap it in markdown fences, prepend an
explanation or get cut off mid-object. These helpers pull out the first
balanced JSON value and clean up the most common syntax slips.
"""

import json
import re
from typing import Any, Optional

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def strip_code_fences(raw_text: str) -> str:
    content = raw_text.strip()
    match = _FENCE.search(content)
    if match:
        return match.group(1).strip()

    # Unterminated fence (truncated response)
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    return content.strip()


def extract_balanced_json(text: str) -> Optional[str]:
    """
    Slice out the first JSON object or array by counting brackets.

    Brackets inside strings are ignored. When the value never closes, the
    remainder of the text is returned so that a truncated response still
    gets a chance to parse after cleanup.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return text[start:]


def remove_trailing_commas(json_text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", json_text)


def parse_llm_json_response(raw_text: str) -> Any:
    """Parse JSON from an LLM response, handling fences, prose and trailing commas.

    Args:
        raw_text: Raw text from LLM response

    Returns:
        The parsed JSON value (usually a dict)

    Raises:
        json.JSONDecodeError: If no JSON value can be recovered
    """
    content = strip_code_fences(raw_text)
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    candidate = extract_balanced_json(content)
    if candidate is None:
        raise json.JSONDecodeError("No JSON object found in response", content, 0)
    return json.loads(remove_trailing_commas(candidate))
