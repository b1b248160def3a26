"""TODO list extraction from model output.

The model is asked for a bare JSON array of strings, but it often wraps the
array in a code fence or in prose. Anything that does not parse to an array
yields an empty list: no placeholder task is ever invented.
"""
import json
import logging
import re
from typing import Any, List

from coderoom.ai_provider.parsing import extract_fenced_block

logger = logging.getLogger(__name__)

MAX_TODOS = 10

# First bracketed span anywhere in the text (non-greedy).
_ARRAY_RE = re.compile(r"\[[\s\S]*?\]")


def _strings_only(items: List[Any]) -> List[str]:
    return [item for item in items if isinstance(item, str)][:MAX_TODOS]


def parse_todos_from_response(response: Any) -> List[str]:
    """Extract up to ``MAX_TODOS`` task strings.

    Args:
        response: Raw model output, or an already-decoded list.

    Returns:
        Task strings in their original order; empty on any failure.
    """
    if isinstance(response, list):
        return _strings_only(response)

    if not isinstance(response, str):
        return []

    candidate = extract_fenced_block(response)
    if candidate is None:
        match = _ARRAY_RE.search(response)
        candidate = match.group(0) if match else response

    try:
        parsed = json.loads(candidate)
    except (ValueError, RecursionError):
        logger.info("TODO response did not contain a parseable JSON array")
        return []

    if not isinstance(parsed, list):
        return []
    return _strings_only(parsed)
