"""Room router: room lifecycle and the blocking message exchange.

Endpoints:
    - POST /api/rooms: Create a room owned by the caller
    - GET /api/rooms/{room_id}/snapshot: Client view of a room
    - POST /api/rooms/{room_id}/message: Send a message and get the reply
    - POST /api/rooms/{room_id}/reset: Clear a room's conversation

The caller's identity is the ``X-Client-Id`` header. Errors are returned as
``{"error": ..., "code": ...}`` by the handlers registered in ``main``.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header

from coderoom.ai_provider import SYSTEM_PROMPT, ChatContextMessage, generate_text
from coderoom.chat.context import build_chat_messages
from coderoom.config import get_config
from coderoom.summary.processor import process_room

from .schemas import CreateRoomResponse, ExchangeResponse, MessageInput, RoomSnapshot
from .service import RoomService, get_room_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["rooms"])

CLIENT_ID_HEADER = "X-Client-Id"


def _service() -> RoomService:
    return get_room_service()


@router.post("", status_code=201, response_model=CreateRoomResponse)
async def create_room(
    x_client_id: Optional[str] = Header(None, alias=CLIENT_ID_HEADER),
) -> CreateRoomResponse:
    """Create a new room owned by the calling client.

    Returns:
        The room id and the path clients use to join it (201 Created).
    """
    room = await _service().create_room(x_client_id)
    return CreateRoomResponse(roomId=room.roomId, joinUrl=f"/{room.roomId}")


@router.get("/{room_id}/snapshot", response_model=RoomSnapshot)
async def get_snapshot(
    room_id: str,
    x_client_id: Optional[str] = Header(None, alias=CLIENT_ID_HEADER),
) -> RoomSnapshot:
    """Return the room as seen by the caller (``isOwner`` set accordingly)."""
    return await _service().get_snapshot(room_id, x_client_id)


@router.post("/{room_id}/message", response_model=ExchangeResponse)
async def post_message(
    room_id: str,
    body: MessageInput,
    background_tasks: BackgroundTasks,
    x_client_id: Optional[str] = Header(None, alias=CLIENT_ID_HEADER),
) -> ExchangeResponse:
    """Send a user message and wait for the full assistant reply.

    The exchange is stored only once the reply is complete. Summary and TODO
    extraction are scheduled to run after the response is sent.

    Args:
        room_id: Target room.
        body: The message content.

    Returns:
        The stored user and assistant messages.
    """
    service = _service()
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
    reply = await generate_text(context, max_chars=ai.max_output_chars)

    exchange = await service.append_exchange(room_id, x_client_id, body.content, reply)
    background_tasks.add_task(
        process_room, service, room_id, summary_max_chars=ai.summary_max_chars
    )
    return exchange


@router.post("/{room_id}/reset")
async def reset_room(
    room_id: str,
    x_client_id: Optional[str] = Header(None, alias=CLIENT_ID_HEADER),
) -> dict:
    """Clear messages, summary, artifacts and rate limits of a room."""
    await _service().reset_room(room_id, x_client_id)
    return {"ok": True}

