"""AIProvider abstract interface for model invocation.

Every provider exposes two ways to call the model with an ordered list of
chat messages:

    - run():    blocking call, returns the raw response payload
                (expected shape ``{"response": str | object}``).
    - stream(): returns an async iterator of raw bytes in the newline-
                delimited, optionally ``data:``-prefixed JSON framing
                decoded by ``ai_provider.stream``.

Usage:
    from coderoom.ai_provider import ChatContextMessage, WorkersAIProvider

    provider = WorkersAIProvider(account_id="...", api_token="...")
    payload = await provider.run([ChatContextMessage("user", "Hello")])
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal, Sequence

ContextRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatContextMessage:
    """A model-call-ready message (no seq, no timestamp).

    Attributes:
        role: system, user or assistant.
        content: The message text.
    """
    role: ContextRole
    content: str

    def to_dict(self) -> dict:
        """Convert to the ``{"role", "content"}`` wire shape."""
        return {"role": self.role, "content": self.content}


class AIProvider(ABC):
    """Abstract base class for model providers.

    Methods:
        health_check: Verify the provider is operational.
        run: Call the model and return the raw payload.
        stream: Call the model in streaming mode and return raw bytes.
    """

    name: str = "provider"

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the provider is configured and reachable.

        Returns:
            bool: True if the provider is operational, False otherwise.
        """
        pass

    @abstractmethod
    async def run(self, messages: Sequence[ChatContextMessage]) -> Any:
        """Call the model and return its raw response payload.

        Args:
            messages: Ordered context messages.

        Returns:
            The decoded response payload, normally ``{"response": ...}``.

        Raises:
            Exception: If the upstream call fails.
        """
        pass

    @abstractmethod
    def stream(self, messages: Sequence[ChatContextMessage]) -> AsyncIterator[bytes]:
        """Call the model in streaming mode.

        The returned iterator is single-consumer. Closing it (``aclose()``)
        must release the underlying transport.

        Args:
            messages: Ordered context messages.

        Returns:
            Async iterator of raw byte chunks with arbitrary boundaries.
        """
        pass
