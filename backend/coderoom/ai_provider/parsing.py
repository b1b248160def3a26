"""Helpers shared by the parsers that read JSON out of model output."""
import re
from typing import Optional

# ```json ... ``` (any optional language tag); first block wins.
FENCED_BLOCK_RE = re.compile(r"```[\w+-]*\s*([\s\S]*?)```")


def extract_fenced_block(text: str) -> Optional[str]:
    """Return the stripped interior of the first fenced code block, if any.

    Args:
        text: Model output that may wrap JSON in a markdown code fence.

    Returns:
        The block interior, or None when the text has no complete fence.
    """
    match = FENCED_BLOCK_RE.search(text)
    if match is None:
        return None
    return match.group(1).strip()
