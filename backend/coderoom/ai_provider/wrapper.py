"""Reusable wrapper for calling the active AI provider.

This module provides high-level functions for calling the provider with
consistent error handling, response coercion and logging.

Usage:
    from coderoom.ai_provider.wrapper import generate_text, stream_tokens

    text = await generate_text(messages, max_chars=5000)

    async for token in stream_tokens(messages, max_chars=5000):
        ...
"""
import json
import logging
from typing import Any, AsyncIterator, Optional, Sequence

from .base import AIProvider, ChatContextMessage
from .stream import StreamResult, iter_stream_tokens

logger = logging.getLogger(__name__)

# Error code surfaced to clients for every upstream model failure.
AI_ERROR_CODE = "AI_ERROR"


class AIProviderError(Exception):
    """Base exception for AI provider errors."""
    def __init__(self, message: str, status_code: int = 502):
        self.message = message
        self.status_code = status_code
        self.code = AI_ERROR_CODE
        super().__init__(message)


class ProviderNotAvailableError(AIProviderError):
    """Raised when no AI provider is configured."""
    def __init__(self, message: str = "No active AI provider available"):
        super().__init__(message, status_code=503)


class ProviderCallError(AIProviderError):
    """Raised when an AI provider call fails."""
    def __init__(self, message: str, provider_name: str):
        self.provider_name = provider_name
        super().__init__(f"Provider {provider_name} error: {message}")


class AIResponseError(AIProviderError):
    """Raised when the provider returns a payload of the wrong shape."""
    def __init__(self, message: str, provider_name: str):
        self.provider_name = provider_name
        super().__init__(f"Invalid AI response from {provider_name}: {message}")


# Global provider instance (initialized on startup)
_provider: Optional[AIProvider] = None


def get_provider() -> Optional[AIProvider]:
    """Get the global AI provider instance."""
    return _provider


def set_provider(provider: Optional[AIProvider]) -> None:
    """Set the global AI provider instance."""
    global _provider
    _provider = provider


def _get_active_provider(provider: Optional[AIProvider]) -> AIProvider:
    active = provider or get_provider()
    if active is None:
        logger.warning("AI provider call failed: provider not initialized")
        raise ProviderNotAvailableError()
    return active


def extract_response_text(payload: Any, provider_name: str = "provider") -> str:
    """Coerce a raw model payload into response text.

    ``{"response": str}`` yields the string, ``{"response": object}`` yields
    the object's JSON text. Anything else is an invalid response.

    Raises:
        AIResponseError: If the payload does not carry a usable response.
    """
    if not isinstance(payload, dict) or "response" not in payload:
        raise AIResponseError("Invalid AI response format", provider_name)

    raw_content = payload["response"]
    if isinstance(raw_content, str):
        return raw_content
    if isinstance(raw_content, (dict, list)):
        return json.dumps(raw_content)
    raise AIResponseError("AI response content is not a string or object", provider_name)


async def generate_text(
    messages: Sequence[ChatContextMessage],
    max_chars: Optional[int] = None,
    provider: Optional[AIProvider] = None,
) -> str:
    """Call the model once and return its response text.

    Args:
        messages: Ordered context messages.
        max_chars: Optional cap; longer responses are truncated.
        provider: Provider override (defaults to the global one).

    Returns:
        str: The response text.

    Raises:
        ProviderNotAvailableError: If no provider is available.
        ProviderCallError: If the provider call fails.
        AIResponseError: If the payload has the wrong shape.
    """
    active = _get_active_provider(provider)
    logger.info("Calling provider %s with %d messages", active.name, len(messages))

    try:
        payload = await active.run(messages)
    except AIProviderError:
        raise
    except Exception as e:
        logger.error("Provider %s error: %s", active.name, e)
        raise ProviderCallError(str(e), active.name) from e

    content = extract_response_text(payload, active.name)
    if max_chars is not None and len(content) > max_chars:
        logger.info("Truncating response from %d to %d chars", len(content), max_chars)
        content = content[:max_chars]
    return content


def stream_tokens(
    messages: Sequence[ChatContextMessage],
    max_chars: int,
    provider: Optional[AIProvider] = None,
    result: Optional[StreamResult] = None,
) -> AsyncIterator[str]:
    """Start a streaming model call and return its token sequence.

    Upstream failures surface while iterating; callers report them as a
    terminal error event.

    Raises:
        ProviderNotAvailableError: If no provider is available.
    """
    active = _get_active_provider(provider)
    logger.info("Streaming from provider %s with %d messages", active.name, len(messages))
    return iter_stream_tokens(active.stream(messages), max_chars, result)
