"""Pull a JSON object out of free-form LLM output."""

from __future__ import annotations

import json
import re
from typing import Any

# Matches markdown code fences (```json ... ``` or ``` ... ```) that LLMs
# wrap around their output.
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def parse_json_object(response: str) -> dict[str, Any]:
    """Extract and parse the JSON object contained in *response*.

    Strips code fences first, then falls back to the outermost ``{...}``
    span when the model added preamble or trailing prose.

    Raises
    ------
    json.JSONDecodeError
        If no valid JSON can be extracted.
    ValueError
        If the parsed value is not a JSON object.
    """
    text = response.strip()

    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    if not text.startswith("{"):
        brace_start = text.find("{")
        brace_end = text.rfind("}")
        if brace_start != -1 and brace_end > brace_start:
            text = text[brace_start : brace_end + 1]

    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("LLM response is not a JSON object")
    return parsed
