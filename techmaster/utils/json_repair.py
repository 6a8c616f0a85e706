"""
Tolerant parsing for JSON produced by language models.

Models asked for "a single JSON object" still occasionally leave a trailing
comma before a closing brace or wrap the object in a Markdown code fence.
Both are repaired here before handing the text to ``json.loads``.
"""

import json
import re
from typing import Any, Dict

from techmaster.utils.error_monitoring import MalformedPayloadError


_CODE_FENCE = re.compile(r"^\s*```(?:json|JSON)?\s*\n(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the whole text is fenced."""
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


def strip_trailing_commas(text: str) -> str:
    """
    Drop commas that are followed (after optional whitespace) by ``}`` or ``]``.

    String literals are copied through untouched, so ``"a, }"`` inside a value
    is preserved.
    """
    out = []
    in_string = False
    escaped = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j < n and text[j] in "}]":
                # Keep the whitespace, lose the comma
                out.append(text[i + 1:j])
                i = j
                continue
            out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def repair_json_text(text: str) -> str:
    return strip_trailing_commas(strip_code_fence(text.strip()))


def parse_json_payload(text: Any) -> Dict[str, Any]:
    """
    Parse generated text into a JSON object.

    Raises:
        MalformedPayloadError: text is not a string, does not parse after
            repair, or does not decode to a JSON object.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedPayloadError("Generated content is empty")

    try:
        data = json.loads(repair_json_text(text))
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Generated content is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedPayloadError(
            f"Generated content must be a JSON object, got {type(data).__name__}"
        )
    return data
