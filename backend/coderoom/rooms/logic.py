"""Pure room operations: creation, message sequencing, bounding, validation.

Nothing here touches storage; ``rooms.service`` composes these functions
inside the per-room lock.
"""
import time
from typing import List, Optional

from .errors import InvalidContentError
from .schemas import Message, MessageRole, RoomData

# Defaults mirror RoomSettings; callers pass configured values explicitly.
DEFAULT_MAX_MESSAGES = 30
DEFAULT_MAX_CHARS_PER_MESSAGE = 10000


def now_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


def create_room_data(room_id: str, owner_client_id: str) -> RoomData:
    """Create empty room data owned by ``owner_client_id``."""
    return RoomData(
        roomId=room_id,
        createdAt=now_ms(),
        ownerClientId=owner_client_id,
    )


def create_message(
    content: str,
    role: MessageRole,
    existing_messages: List[Message],
    client_id: Optional[str] = None,
) -> Message:
    """Create the next message in a log.

    The sequence number continues from the last message, so it stays gapless
    even after the oldest messages were evicted by ``bound_messages``.
    """
    last_seq = existing_messages[-1].seq if existing_messages else 0
    return Message(
        seq=last_seq + 1,
        role=role,
        content=content,
        ts=now_ms(),
        clientId=client_id,
    )


def bound_messages(messages: List[Message], max_messages: int) -> List[Message]:
    """Keep only the newest ``max_messages`` messages."""
    if len(messages) <= max_messages:
        return messages
    return messages[-max_messages:]


def validate_message_content(
    content: str,
    max_chars: int = DEFAULT_MAX_CHARS_PER_MESSAGE,
) -> None:
    """Reject empty or oversized message content.

    Raises:
        InvalidContentError: With code EMPTY_CONTENT or CONTENT_TOO_LONG.
    """
    if not content or not content.strip():
        raise InvalidContentError("Message content cannot be empty", "EMPTY_CONTENT")

    if len(content) > max_chars:
        raise InvalidContentError(
            f"Message exceeds maximum length of {max_chars} characters",
            "CONTENT_TOO_LONG",
        )
