"""
LLM output sanitization

Models wrap JSON in markdown fences even when asked not to. Fences are
stripped before parsing; anything that still fails to parse is a
ValidationError.
"""

import json
import re
from typing import Any, Dict

from exceptions import ValidationError

_FENCE_PATTERN = re.compile(r"^\s*```(?:json|JSON)?\s*\n?([\s\S]*?)\n?\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """Remove one surrounding ```json / ``` fence; other text is returned trimmed"""
    if not text:
        return ""
    match = _FENCE_PATTERN.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json_output(text: str) -> Dict[str, Any]:
    """
    Parse a model's JSON object output

    Raises:
        ValidationError: empty output, invalid JSON, or a non-object value
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ValidationError("Empty model output", raw_content=text or "")

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Model output is not valid JSON: {e}", raw_content=text) from e

    if not isinstance(parsed, dict):
        raise ValidationError(
            f"Model output must be a JSON object, got {type(parsed).__name__}",
            raw_content=text,
        )
    return parsed
