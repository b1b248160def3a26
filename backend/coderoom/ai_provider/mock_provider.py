"""Mock provider for running the service without a real model.

MockProvider answers from a queue of scripted replies, falling back to a
deterministic reply chosen by the system prompt of the request:

    - review prompt: a small valid review report (JSON)
    - TODO prompt:   a JSON array with one task
    - summary prompt: a one-line summary
    - anything else: an echo of the last user message

Streaming splits the reply into ``data: {"response": ...}`` events and then
re-chunks the bytes at a fixed size, so JSON lines (and multi-byte
characters) straddle chunk boundaries the way real network reads do.
"""
import json
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence, Union

from .base import AIProvider, ChatContextMessage
from .prompts import REVIEW_PROMPT, SUMMARY_PROMPT, TODO_EXTRACT_PROMPT

Reply = Union[str, dict, Exception]

DEFAULT_REVIEW = {
    "summary": "The snippet is small and readable.",
    "issues": [],
    "edgeCases": ["Empty input"],
    "refactorSuggestions": [],
    "testPlan": ["Add a unit test for the happy path"],
}


class MockProvider(AIProvider):
    """Deterministic provider for development and tests.

    Attributes:
        replies: Queue of scripted replies. A str is returned as the
            response text, a dict as the raw payload, an Exception is raised.
        calls: Every message list the provider was called with.
        closed_streams: Number of streams whose generator was closed.
    """

    name = "mock"

    def __init__(
        self,
        replies: Optional[List[Reply]] = None,
        chunk_size: int = 7,
        token_size: int = 4,
        responder: Optional[Callable[[Sequence[ChatContextMessage]], str]] = None,
    ) -> None:
        self.replies: List[Reply] = list(replies or [])
        self.chunk_size = chunk_size
        self.token_size = token_size
        self.responder = responder
        self.calls: List[List[ChatContextMessage]] = []
        self.closed_streams = 0

    def health_check(self) -> bool:
        return True

    def queue(self, *replies: Reply) -> None:
        self.replies.extend(replies)

    def _default_reply(self, messages: Sequence[ChatContextMessage]) -> str:
        if self.responder is not None:
            return self.responder(messages)
        system = messages[0].content if messages and messages[0].role == "system" else ""
        if system == REVIEW_PROMPT:
            return json.dumps(DEFAULT_REVIEW)
        if system == TODO_EXTRACT_PROMPT:
            return json.dumps(["Write tests for the discussed code"])
        if system == SUMMARY_PROMPT:
            return "User is working on their code with the assistant."
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        return f"Mock reply: {last_user}"

    def _next(self, messages: Sequence[ChatContextMessage]) -> Reply:
        self.calls.append(list(messages))
        reply = self.replies.pop(0) if self.replies else self._default_reply(messages)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def run(self, messages: Sequence[ChatContextMessage]) -> Any:
        reply = self._next(messages)
        if isinstance(reply, dict):
            return reply
        return {"response": reply}

    async def stream(self, messages: Sequence[ChatContextMessage]) -> AsyncIterator[bytes]:
        reply = self._next(messages)
        text = reply if isinstance(reply, str) else json.dumps(reply)
        events = "".join(
            "data: " + json.dumps({"response": text[i:i + self.token_size]}) + "\n\n"
            for i in range(0, len(text), self.token_size)
        ) + "data: [DONE]\n\n"
        raw = events.encode("utf-8")
        try:
            for i in range(0, len(raw), self.chunk_size):
                yield raw[i:i + self.chunk_size]
        finally:
            self.closed_streams += 1
