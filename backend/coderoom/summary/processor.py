"""Background post-processing after a message exchange.

Regenerates the room's rolling summary and extracts its TODO list. The job
runs outside the request path (FastAPI background task), never raises, and
is safe to rerun: each run overwrites both artifacts from the current room
state.
"""
import logging
from typing import Optional

from coderoom.ai_provider import (
    AIProvider,
    SUMMARY_PROMPT,
    TODO_EXTRACT_PROMPT,
    build_summary_messages,
    build_todo_extract_messages,
    generate_text,
)
from coderoom.rooms.service import RoomService
from coderoom.todos.parser import parse_todos_from_response

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_MAX_CHARS = 500


async def process_room(
    room_service: RoomService,
    room_id: str,
    provider: Optional[AIProvider] = None,
    summary_max_chars: int = DEFAULT_SUMMARY_MAX_CHARS,
) -> bool:
    """Refresh the summary and TODO artifacts of one room.

    Returns:
        True if artifacts were written, False if there was nothing to do or
        the job failed.
    """
    try:
        room = await room_service.get_room(room_id)
        if not room.messages:
            logger.info(f"[PostProcess] Room {room_id} has no messages, skipping")
            return False

        summary_messages = build_summary_messages(SUMMARY_PROMPT, room.rollingSummary, room.messages)
        summary = await generate_text(summary_messages, provider=provider)
        summary = summary.strip()[:summary_max_chars]

        todo_messages = build_todo_extract_messages(TODO_EXTRACT_PROMPT, room.messages)
        todos = parse_todos_from_response(await generate_text(todo_messages, provider=provider))

        await room_service.update_artifacts(room_id, rolling_summary=summary, todos=todos)
        logger.info(f"[PostProcess] Updated room {room_id}: {len(summary)} summary chars, {len(todos)} todos")
        return True
    except Exception as e:
        logger.error(f"[PostProcess] Failed for room {room_id}: {e}", exc_info=True)
        return False
