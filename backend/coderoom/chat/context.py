"""Bounded chat context for model calls.

Builds the message list sent to the model from the system prompt, the room's
rolling summary and its message log, evicting the oldest messages until the
total character count fits the budget.
"""
from typing import List, Sequence

from coderoom.ai_provider.base import ChatContextMessage

SUMMARY_HEADER = "\n\nContext from previous conversation:\n"


def build_system_content(system_prompt: str, rolling_summary: str) -> str:
    """System prompt, with the rolling summary appended when there is one."""
    if not rolling_summary:
        return system_prompt
    return f"{system_prompt}{SUMMARY_HEADER}{rolling_summary}"


def build_chat_messages(
    system_prompt: str,
    rolling_summary: str,
    messages: Sequence,
    max_chars: int,
) -> List[ChatContextMessage]:
    """Assemble the context for a chat completion.

    The result always starts with exactly one system message, followed by
    the conversation in its original order. While the total length (system
    content plus every message content) exceeds ``max_chars``, the oldest
    conversation message is dropped. The system message is never dropped,
    even when it alone exceeds the budget.

    Args:
        system_prompt: Base instructions for the model.
        rolling_summary: Condensed earlier conversation ("" if none).
        messages: Room messages, oldest first (``role``/``content``).
        max_chars: Character budget for the whole context.

    Returns:
        List of ChatContextMessage, system message first.
    """
    system_content = build_system_content(system_prompt, rolling_summary)

    queue = [ChatContextMessage(m.role, m.content) for m in messages]
    total_chars = len(system_content) + sum(len(m.content) for m in queue)

    dropped = 0
    while dropped < len(queue) and total_chars > max_chars:
        total_chars -= len(queue[dropped].content)
        dropped += 1

    return [ChatContextMessage("system", system_content)] + queue[dropped:]
