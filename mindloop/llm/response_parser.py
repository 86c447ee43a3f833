"""Response parsing utilities for LLM output.

Extracts fenced blocks and JSON objects from raw LLM responses. Structured
judgments may arrive either as a bare JSON object or wrapped in a fenced
code block; both shapes parse to the same dict.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional


def extract_code_blocks(text: str, language: Optional[str] = None) -> list[str]:
    """Extract fenced code blocks from LLM output.

    Args:
        text: Raw LLM response.
        language: If specified, only return blocks with this language tag.

    Returns:
        List of code block contents (without fences).
    """
    if language:
        pattern = rf"```{re.escape(language)}\s*\n?(.*?)```"
    else:
        pattern = r"```(?:\w+)?\s*\n?(.*?)```"

    matches = re.findall(pattern, text, re.DOTALL)
    return [m.strip() for m in matches]


def _loads_object(text: str) -> Optional[dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json_block(text: Any) -> Optional[dict[str, Any]]:
    """Extract and parse the first JSON object from LLM output.

    Returns None when nothing in the text parses as a JSON object.
    """
    if text is None:
        return None
    if isinstance(text, dict):
        return text
    text = str(text)

    for block in extract_code_blocks(text, "json") + extract_code_blocks(text):
        parsed = _loads_object(block)
        if parsed is not None:
            return parsed

    # Try parsing the whole response as JSON
    return _loads_object(text.strip())


def clamp(value: Any, low: float, high: float, default: float = 0.0) -> float:
    """Coerce ``value`` to a float inside [low, high]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(low, min(high, number))
