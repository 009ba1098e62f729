# redditpulse/classification/json_extract.py
import json
from typing import Any, Dict, Optional

from redditpulse.core.exceptions import ClassificationParseError


def find_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` block in ``text``, or None.
    - Braces inside JSON strings are ignored.
    - Surrounding prose and markdown code fences are skipped.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False

        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue

            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]

        # unbalanced from this brace; try the next one
        start = text.find("{", start + 1)

    return None


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Parse the first balanced JSON object out of free-form model output."""
    if not text or not text.strip():
        raise ClassificationParseError("Empty model response")

    block = find_balanced_object(text)
    if block is None:
        raise ClassificationParseError(f"No JSON object in response: {text[:200]!r}")

    try:
        parsed = json.loads(block)
    except json.JSONDecodeError as exc:
        raise ClassificationParseError(f"Invalid JSON object: {block[:200]!r}") from exc

    if not isinstance(parsed, dict):
        raise ClassificationParseError("JSON payload is not an object")
    return parsed
