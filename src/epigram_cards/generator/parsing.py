"""Extract card drafts from raw completion text."""

import json
import re
from typing import Optional

from ..errors import ResponseParseError

FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

# Keys some responses use to wrap the card array in an object
WRAPPER_KEYS = ("cards", "items", "results")


def extract_json_text(raw: str) -> Optional[str]:
    """Cut the outermost JSON array or object out of a response."""
    fence = FENCE_RE.search(raw)
    text = fence.group(1) if fence else raw

    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    if not starts:
        return None
    start = min(starts)
    end = text.rfind("]" if text[start] == "[" else "}")
    if end <= start:
        return None
    return text[start : end + 1]


def repair_json(text: str) -> str:
    """Fix the mistakes models commonly make in JSON output."""
    text = TRAILING_COMMA_RE.sub(r"\1", text)
    return CONTROL_CHARS_RE.sub(" ", text)


def parse_tier_response(raw: str) -> list[dict]:
    """
    Parse a tier generator's completion into card drafts.

    Args:
        raw: Response text, optionally wrapped in prose or markdown fences

    Returns:
        The object elements of the JSON payload; an empty array gives []

    Raises:
        ResponseParseError: If no JSON array or object can be recovered
    """
    if not raw or not raw.strip():
        raise ResponseParseError("Empty completion", raw=raw or "")

    json_text = extract_json_text(raw)
    if json_text is None:
        raise ResponseParseError("No JSON found in completion", raw=raw)

    try:
        payload = json.loads(json_text)
    except json.JSONDecodeError:
        try:
            payload = json.loads(repair_json(json_text), strict=False)
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Invalid JSON: {e}", raw=raw) from e

    if isinstance(payload, dict):
        for key in WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            payload = [payload]

    if not isinstance(payload, list):
        raise ResponseParseError(f"Expected a JSON array, got {type(payload).__name__}", raw=raw)

    return [item for item in payload if isinstance(item, dict)]
