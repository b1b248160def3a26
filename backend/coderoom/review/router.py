"""Review router.

Endpoints:
    - POST /api/rooms/{room_id}/review: Structured review of the conversation
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Header

from coderoom.config import get_config
from coderoom.rooms.service import get_room_service

from .schemas import ReviewRequest, ReviewResponse
from .service import run_review

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rooms", tags=["review"])


@router.post("/{room_id}/review", response_model=ReviewResponse)
async def review_room(
    room_id: str,
    body: Optional[ReviewRequest] = Body(None),
    x_client_id: Optional[str] = Header(None, alias="X-Client-Id"),
) -> ReviewResponse:
    """Review the room's conversation, reusing the stored review if unchanged.

    Args:
        room_id: Room to review.
        body: ``{"force": true}`` bypasses the cache. May be omitted.

    Returns:
        The review record and whether it came from the cache.
    """
    service = get_room_service()
    await service.check_rate_limit(room_id, x_client_id, "review")

    force = body.force if body is not None else False
    return await run_review(
        service,
        room_id,
        x_client_id,
        force=force,
        max_output_chars=get_config().ai.max_output_chars,
    )
