"""Cached code review of a room's conversation."""
import hashlib
import logging
from typing import Optional, Sequence

from coderoom.ai_provider import AIProvider, REVIEW_PROMPT, build_review_messages, generate_text
from coderoom.rooms.logic import now_ms
from coderoom.rooms.service import RoomService

from .parser import parse_review_response
from .schemas import ReviewRecord, ReviewResponse

logger = logging.getLogger(__name__)


def compute_input_hash(messages: Sequence, summary: str) -> str:
    """SHA-256 hex digest of the ordered ``role:content`` pairs plus the summary."""
    payload = "|".join(f"{m.role}:{m.content}" for m in messages) + summary
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


async def run_review(
    room_service: RoomService,
    room_id: str,
    client_id: Optional[str],
    force: bool = False,
    provider: Optional[AIProvider] = None,
    max_output_chars: Optional[int] = None,
) -> ReviewResponse:
    """Return the room's review, reusing the stored one when nothing changed.

    The cache key covers every message and the rolling summary, so any new
    message or summary update invalidates the stored review.

    Args:
        room_service: Service owning the room.
        room_id: Room to review.
        client_id: Caller identity; must own the room.
        force: Skip the cache and always call the model.
        provider: Provider override (defaults to the global one).
        max_output_chars: Cap on the raw model output.

    Raises:
        RoomError: For a missing room, identity or ownership.
        AIProviderError: If the model call fails.
    """
    room = await room_service.get_owned_room(room_id, client_id)
    input_hash = compute_input_hash(room.messages, room.rollingSummary)

    last_review = room.artifacts.lastReview
    if not force and last_review is not None and last_review.inputHash == input_hash:
        logger.info(f"[Review] Cache hit for room {room_id}")
        return ReviewResponse(review=last_review, cached=True)

    messages = build_review_messages(REVIEW_PROMPT, room.messages, room.rollingSummary)
    raw = await generate_text(messages, max_chars=max_output_chars, provider=provider)
    report = parse_review_response(raw)

    record = ReviewRecord(ts=now_ms(), content=report, inputHash=input_hash)
    await room_service.update_artifacts(room_id, last_review=record)
    logger.info(f"[Review] Stored review for room {room_id} ({len(report.issues)} issues)")
    return ReviewResponse(review=record, cached=False)
