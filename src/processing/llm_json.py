import json
import re
from typing import Any

_FENCE = re.compile(r'^```(?:json)?\s*\n?(.*?)\n?```$', re.DOTALL)


class LLMResponseError(ValueError):
    """Model output was not the JSON that was asked for."""


def strip_code_fence(content: str) -> str:
    """
    Strip a markdown code block (```json ... ``` or ``` ... ```) if the
    whole response is wrapped in one.
    """
    content = content.strip()
    match = _FENCE.match(content)
    if match:
        return match.group(1).strip()
    return content


def parse_json(content: str) -> Any:
    try:
        return json.loads(strip_code_fence(content or ""))
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Invalid JSON returned by model: {e}") from e
