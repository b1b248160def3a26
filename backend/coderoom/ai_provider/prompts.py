"""Prompt templates and prompt-message builders.

The prompt texts are plain module constants; orchestration code passes them
explicitly into the builders below (and into ``chat.context``) so that the
core has no hidden dependency on them.
"""
from typing import List, Sequence

from .base import ChatContextMessage

# =============================================================================
# Chat
# =============================================================================

SYSTEM_PROMPT = """You are a pair-programming assistant. Your job is to help the user understand, debug, and improve THEIR code.

Operating constraints (read carefully):
- You only know what the user tells you or pastes. You cannot see their repository, files, environment, logs, or run code.
- Do not claim you executed code or verified behavior. If needed, propose how to verify.
- Do not invent files, functions, classes, APIs, routes, environment variables, or dependencies that the user has not shown. If something is missing, ask.
- If you make assumptions, label them explicitly as "Assumptions" and keep them minimal.

Style:
- Be concise, direct, and technically precise.
- Prefer actionable steps and minimal changes.
- Use Markdown formatting.
- Avoid long preambles. Start with the answer.

Interaction protocol:
1) If the request is ambiguous or missing key context, ask up to 3 targeted clarifying questions.
2) Otherwise, proceed with the best answer and state any critical assumptions.
3) When debugging: identify the most likely root cause(s), propose a minimal fix, and explain how to confirm it.
4) When reviewing code: prioritize correctness, security, performance, and maintainability (in that order).

Safety & security:
- Never request or output secrets (API keys, tokens). If shown, advise rotating them.
- Call out obvious vulnerabilities (injection, auth bypass, unsafe eval, insecure CORS, etc.) when relevant."""

# =============================================================================
# Background artifacts
# =============================================================================

SUMMARY_PROMPT = """You maintain a rolling summary of a pair-programming conversation.

Update the current summary with the recent messages. Keep it under 500 characters.
Capture the user's goal, the code or components under discussion, decisions made, and open problems.
Do not invent details that are not in the conversation.
Output only the updated summary as plain text, with no preamble."""

TODO_EXTRACT_PROMPT = """You extract action items from a pair-programming conversation.

Return the concrete follow-up tasks the user still needs to do, most important first, at most 10.
Each task is a short imperative sentence (for example "Add input validation to the signup handler").
If there are no tasks, return an empty array.

Output ONLY a valid JSON array of strings, with no markdown formatting and no additional explanation."""

# =============================================================================
# Review
# =============================================================================

REVIEW_PROMPT = """You are a senior code reviewer. Review the code and design discussed in the conversation.

Only review what the user has actually shown. Do not invent files or functions.

Output ONLY valid JSON with no markdown formatting and no additional explanation.

<output_schema>
{
  "summary": "1-3 sentence overall assessment",
  "issues": [
    {"severity": "critical | major | minor", "title": "short title", "description": "what is wrong and why", "location": "file, function or snippet"}
  ],
  "edgeCases": ["input or situation worth checking"],
  "refactorSuggestions": [
    {"title": "short title", "rationale": "why it helps", "effort": "low | medium | high"}
  ],
  "testPlan": ["test to add"]
}
</output_schema>

<constraints>
- At most 5 items in each array, most important first.
- Use empty arrays when there is nothing to report.
</constraints>"""

NONE_PLACEHOLDER = "(none)"


def format_conversation(messages: Sequence) -> str:
    """Format room messages as ``ROLE: content`` lines.

    Args:
        messages: Objects with ``role`` and ``content`` attributes.

    Returns:
        str: One line per message, or "(none)" for an empty conversation.
    """
    if not messages:
        return NONE_PLACEHOLDER
    return "\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


def build_summary_messages(
    summary_prompt: str,
    current_summary: str,
    messages: Sequence,
) -> List[ChatContextMessage]:
    """Build the model input for regenerating the rolling summary."""
    summary_text = current_summary or NONE_PLACEHOLDER
    return [
        ChatContextMessage("system", summary_prompt),
        ChatContextMessage(
            "user",
            f"Current summary:\n{summary_text}\n\n"
            f"Recent messages:\n{format_conversation(messages)}\n\n"
            "Output only the updated summary.",
        ),
    ]


def build_todo_extract_messages(
    todo_prompt: str,
    messages: Sequence,
) -> List[ChatContextMessage]:
    """Build the model input for TODO extraction."""
    return [
        ChatContextMessage("system", todo_prompt),
        ChatContextMessage(
            "user",
            f"Conversation:\n{format_conversation(messages)}\n\n"
            "Output only a valid JSON array of strings.",
        ),
    ]


def build_review_messages(
    review_prompt: str,
    messages: Sequence,
    summary: str,
) -> List[ChatContextMessage]:
    """Build the model input for a structured review."""
    summary_text = summary or NONE_PLACEHOLDER
    return [
        ChatContextMessage("system", review_prompt),
        ChatContextMessage(
            "user",
            f"Context summary:\n{summary_text}\n\n"
            f"Conversation:\n{format_conversation(messages)}\n\n"
            "Provide your review as JSON.",
        ),
    ]
