"""Incremental token parser for streamed model output.

The upstream model streams newline-delimited JSON fragments, each optionally
framed as a Server-Sent Event (``data: {...}``), terminated by a
``data: [DONE]`` marker. Chunk boundaries are arbitrary: a JSON fragment (or
a multi-byte UTF-8 character) may be split across chunks.

``iter_stream_tokens`` turns that byte stream into a lazy sequence of text
tokens while enforcing an output character cap. When the cap is reached the
sequence ends early (logically finished, not failed) and no further chunks
are read. The chunk source is closed on every exit path.
"""
import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


@dataclass
class StreamResult:
    """What one streaming call produced.

    Attributes:
        tokens: Tokens in the order they were yielded.
        accumulated: Concatenation of ``tokens``.
        truncated: True if the output cap cut the stream short.
    """
    tokens: List[str] = field(default_factory=list)
    accumulated: str = ""
    truncated: bool = False

    def add(self, token: str) -> None:
        self.tokens.append(token)
        self.accumulated += token


def parse_stream_line(line: str) -> Optional[str]:
    """Extract the token carried by one line of the stream.

    Args:
        line: A single line, without its trailing newline.

    Returns:
        The ``response`` string (possibly empty), or None if the line carries
        no token: blank lines, the ``[DONE]`` marker, invalid JSON, objects
        without a string ``response``.
    """
    trimmed = line.strip()
    if not trimmed:
        return None

    if trimmed.startswith(SSE_DATA_PREFIX):
        trimmed = trimmed[len(SSE_DATA_PREFIX):].strip()

    if trimmed == DONE_MARKER:
        return None

    try:
        parsed = json.loads(trimmed)
    except (ValueError, RecursionError):
        logger.debug("Skipping non-JSON stream line: %.80s", trimmed)
        return None

    if not isinstance(parsed, dict):
        return None

    response = parsed.get("response")
    if isinstance(response, str):
        return response
    return None


async def _close(chunks: AsyncIterator[bytes]) -> None:
    aclose = getattr(chunks, "aclose", None)
    if aclose is not None:
        await aclose()


async def iter_stream_tokens(
    chunks: AsyncIterator[bytes],
    max_chars: int,
    result: Optional[StreamResult] = None,
) -> AsyncIterator[str]:
    """Decode a model byte stream into text tokens, capped at ``max_chars``.

    Args:
        chunks: Async iterator of raw byte chunks (single consumer).
        max_chars: Maximum total characters across all yielded tokens.
        result: Optional StreamResult that is filled in as tokens are yielded.

    Yields:
        Text tokens in stream order. An empty-string token is yielded as is.
    """
    state = result if result is not None else StreamResult()
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""

    def fit(token: str) -> Optional[str]:
        # Returns the part of the token that fits, or None once the cap is hit.
        if len(state.accumulated) + len(token) <= max_chars:
            return token
        state.truncated = True
        remaining = max_chars - len(state.accumulated)
        return token[:remaining] if remaining > 0 else None

    try:
        async for chunk in chunks:
            buffer += decoder.decode(chunk)
            lines = buffer.split("\n")
            buffer = lines.pop()

            for line in lines:
                token = parse_stream_line(line)
                if token is None:
                    continue
                piece = fit(token)
                if piece is not None:
                    state.add(piece)
                    yield piece
                if state.truncated:
                    logger.info("Stream output capped at %d chars", max_chars)
                    return

        buffer += decoder.decode(b"", final=True)
        if buffer.strip():
            token = parse_stream_line(buffer)
            if token is not None:
                piece = fit(token)
                if piece is not None:
                    state.add(piece)
                    yield piece
    finally:
        await _close(chunks)


async def collect_stream(chunks: AsyncIterator[bytes], max_chars: int) -> StreamResult:
    """Drain a model byte stream and return everything it produced."""
    result = StreamResult()
    async for _token in iter_stream_tokens(chunks, max_chars, result):
        pass
    return result
