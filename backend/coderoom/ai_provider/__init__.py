"""AI Provider module for model invocation.

This module provides a unified interface for calling the language model,
with two implementations: WorkersAIProvider (HTTP) and MockProvider.

Usage:
    from coderoom.ai_provider import (
        ChatContextMessage, WorkersAIProvider, generate_text, set_provider
    )

    set_provider(WorkersAIProvider(account_id="...", api_token="..."))
    text = await generate_text([ChatContextMessage("user", "Hello")])
"""
from .base import AIProvider, ChatContextMessage
from .mock_provider import MockProvider
from .prompts import (
    REVIEW_PROMPT,
    SUMMARY_PROMPT,
    SYSTEM_PROMPT,
    TODO_EXTRACT_PROMPT,
    build_review_messages,
    build_summary_messages,
    build_todo_extract_messages,
    format_conversation,
)
from .stream import StreamResult, collect_stream, iter_stream_tokens, parse_stream_line
from .workers_ai import WorkersAIProvider
from .wrapper import (
    AI_ERROR_CODE,
    AIProviderError,
    AIResponseError,
    ProviderCallError,
    ProviderNotAvailableError,
    extract_response_text,
    generate_text,
    get_provider,
    set_provider,
    stream_tokens,
)

__all__ = [
    "AIProvider",
    "ChatContextMessage",
    "MockProvider",
    "WorkersAIProvider",
    "SYSTEM_PROMPT",
    "SUMMARY_PROMPT",
    "TODO_EXTRACT_PROMPT",
    "REVIEW_PROMPT",
    "build_review_messages",
    "build_summary_messages",
    "build_todo_extract_messages",
    "format_conversation",
    "StreamResult",
    "collect_stream",
    "iter_stream_tokens",
    "parse_stream_line",
    # Wrapper functions and exceptions
    "generate_text",
    "stream_tokens",
    "extract_response_text",
    "get_provider",
    "set_provider",
    "AI_ERROR_CODE",
    "AIProviderError",
    "AIResponseError",
    "ProviderCallError",
    "ProviderNotAvailableError",
]
