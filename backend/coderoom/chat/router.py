"""Streaming chat router.

This module provides:
    - POST /api/rooms/{room_id}/message/stream: Send a message and receive
      the assistant reply as Server-Sent Events

Stream protocol (see ``chat.sse``):
    meta {seq}  ->  delta {content} ...  ->  done {totalChars}
                                         or  error {code, message, partial?}

Admission (identity, ownership, content, rate limit) is checked before the
stream starts, so those failures are plain JSON errors. Once the stream is
open, failures become a terminal ``error`` event.

The exchange is written to the room only after the model output is complete
(or the output cap is reached). An upstream error or a client disconnect
before that point leaves the room untouched.
"""
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Header
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from coderoom.ai_provider import (
    AI_ERROR_CODE,
    SYSTEM_PROMPT,
    AIProviderError,
    ChatContextMessage,
    StreamResult,
    stream_tokens,
)
from coderoom.config import get_config
from coderoom.rooms.errors import RoomError
from coderoom.rooms.schemas import MessageInput
from coderoom.rooms.service import RoomService, get_room_service
from coderoom.summary.processor import process_room

from .context import build_chat_messages
from .sse import (
    SSE_HEADERS,
    SSEDeltaEvent,
    SSEDoneEvent,
    SSEErrorEvent,
    SSEMetaEvent,
    format_sse_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["chat"])


@dataclass
class StreamOutcome:
    """What a finished stream left behind; read by the post-stream task."""
    stored: bool = False


async def chat_event_stream(
    service: RoomService,
    room_id: str,
    client_id: str,
    content: str,
    context: List[ChatContextMessage],
    seq: int,
    max_chars: int,
    outcome: Optional[StreamOutcome] = None,
) -> AsyncIterator[str]:
    """Yield the SSE events of one streamed exchange.

    Args:
        service: Room service the exchange is stored through.
        room_id: Target room.
        client_id: Owner of the room.
        content: The user message.
        context: Model context, already bounded.
        seq: Sequence number announced in the ``meta`` event.
        max_chars: Cap on the assistant reply.
        outcome: Set to ``stored=True`` once the exchange is persisted.
    """
    result = StreamResult()
    yield format_sse_event(SSEMetaEvent(seq=seq))

    tokens = None
    try:
        tokens = stream_tokens(context, max_chars, result=result)
        async for token in tokens:
            yield format_sse_event(SSEDeltaEvent(content=token))
    except AIProviderError as e:
        logger.error(f"[Stream] Room {room_id} stream failed: {e.message}")
        yield _error_event(e.code, e.message, result)
        return
    except Exception as e:
        logger.error(f"[Stream] Room {room_id} stream failed: {e}", exc_info=True)
        yield _error_event(AI_ERROR_CODE, "AI service error", result)
        return
    finally:
        if tokens is not None:
            await tokens.aclose()

    if result.truncated:
        logger.info(f"[Stream] Room {room_id} reply truncated at {len(result.accumulated)} chars")

    try:
        await service.append_exchange(room_id, client_id, content, result.accumulated)
    except RoomError as e:
        logger.warning(f"[Stream] Room {room_id} exchange not stored: {e.message}")
        yield _error_event(e.code, e.message, result)
        return

    if outcome is not None:
        outcome.stored = True
    yield format_sse_event(SSEDoneEvent(totalChars=len(result.accumulated)))


def _error_event(code: str, message: str, result: StreamResult) -> str:
    return format_sse_event(
        SSEErrorEvent(code=code, message=message, partial=result.accumulated or None)
    )


async def _post_process_if_stored(
    outcome: StreamOutcome,
    service: RoomService,
    room_id: str,
    summary_max_chars: int,
) -> None:
    if outcome.stored:
        await process_room(service, room_id, summary_max_chars=summary_max_chars)


@router.post("/{room_id}/message/stream")
async def stream_message(
    room_id: str,
    body: MessageInput,
    x_client_id: Optional[str] = Header(None, alias="X-Client-Id"),
) -> StreamingResponse:
    """Send a user message and stream the assistant reply as SSE.

    Args:
        room_id: Target room.
        body: The message content.

    Returns:
        A ``text/event-stream`` response.
    """
    service = get_room_service()
    ai = get_config().ai

    await service.check_rate_limit(room_id, x_client_id, "message")
    service.validate_content(body.content)
    room = await service.get_owned_room(room_id, x_client_id)

    context = build_chat_messages(
        SYSTEM_PROMPT,
        room.rollingSummary,
        [*room.messages, ChatContextMessage("user", body.content)],
        ai.max_context_chars,
    )
    next_seq = (room.messages[-1].seq if room.messages else 0) + 1

    outcome = StreamOutcome()
    events = chat_event_stream(
        service,
        room_id,
        x_client_id,
        body.content,
        context,
        next_seq,
        ai.max_output_chars,
        outcome,
    )
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(
            _post_process_if_stored, outcome, service, room_id, ai.summary_max_chars
        ),
    )
