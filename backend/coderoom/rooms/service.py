"""Room service: serialized access to per-room state.

Each room behaves like a single actor. Every operation that reads or writes
a room's blob runs under that room's ``asyncio.Lock``, so two operations on
the same room never interleave their read-modify-write cycles. Operations on
different rooms are independent.

Model calls are never made while holding a room lock. A chat exchange is
therefore three short critical sections (rate check, context read, final
write); sequence numbers are assigned at write time, which keeps them
gapless.

Thread Safety:
    Designed for a single event loop. It is NOT thread-safe.
"""
import asyncio
import logging
import uuid
from typing import Dict, List, Optional

from coderoom.rate_limit import RATE_LIMITS, RateLimitConfig, RateLimitResult, check, rate_limit_key
from coderoom.review.schemas import ReviewRecord

from .errors import (
    InvalidActionError,
    MissingClientIdError,
    NotOwnerError,
    RateLimitedError,
    RoomExistsError,
    RoomNotFoundError,
)
from .logic import (
    DEFAULT_MAX_CHARS_PER_MESSAGE,
    DEFAULT_MAX_MESSAGES,
    bound_messages,
    create_message,
    create_room_data,
    now_ms,
    validate_message_content,
)
from .schemas import ExchangeResponse, Message, RoomData, RoomSnapshot, TodosRecord
from .store import RoomStore

logger = logging.getLogger(__name__)


def require_client_id(client_id: Optional[str]) -> str:
    """Return the client id, rejecting a missing or blank one."""
    if not client_id or not client_id.strip():
        raise MissingClientIdError()
    return client_id


class RoomService:
    """Serialized operations over rooms held in a RoomStore.

    Attributes:
        store: Backing key-value store.
        max_messages: Messages kept per room (oldest evicted first).
        max_chars_per_message: Upper bound on user message length.
        rate_limits: Limit per action kind.
    """

    def __init__(
        self,
        store: RoomStore,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_chars_per_message: int = DEFAULT_MAX_CHARS_PER_MESSAGE,
        rate_limits: Optional[Dict[str, RateLimitConfig]] = None,
    ) -> None:
        self.store = store
        self.max_messages = max_messages
        self.max_chars_per_message = max_chars_per_message
        self.rate_limits = dict(rate_limits or RATE_LIMITS)
        # room_id -> lock serializing all access to that room
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, room_id: str) -> asyncio.Lock:
        """The lock that serializes operations on ``room_id``."""
        return self._locks.setdefault(room_id, asyncio.Lock())

    def _load(self, room_id: str) -> RoomData:
        room = self.store.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    def _load_owned(self, room_id: str, client_id: Optional[str]) -> RoomData:
        client_id = require_client_id(client_id)
        room = self._load(room_id)
        if room.ownerClientId != client_id:
            logger.warning(f"[Rooms] Client {client_id} is not the owner of room {room_id}")
            raise NotOwnerError()
        return room

    def validate_content(self, content: str) -> None:
        validate_message_content(content, self.max_chars_per_message)

    # -----------------------------------------------------------------------
    # Room lifecycle
    # -----------------------------------------------------------------------

    async def create_room(self, client_id: Optional[str], room_id: Optional[str] = None) -> RoomData:
        """Create a room owned by ``client_id``.

        Raises:
            MissingClientIdError: If no client id is given.
            RoomExistsError: If ``room_id`` is already taken.
        """
        client_id = require_client_id(client_id)
        room_id = room_id or str(uuid.uuid4())
        async with self.lock(room_id):
            if self.store.exists(room_id):
                raise RoomExistsError(room_id)
            room = create_room_data(room_id, client_id)
            self.store.put(room)
        logger.info(f"[Rooms] Created room {room_id} for client {client_id}")
        return room

    async def get_room(self, room_id: str) -> RoomData:
        """Read a consistent copy of the room blob."""
        async with self.lock(room_id):
            return self._load(room_id)

    async def get_owned_room(self, room_id: str, client_id: Optional[str]) -> RoomData:
        """Read the room blob, requiring ``client_id`` to own it."""
        async with self.lock(room_id):
            return self._load_owned(room_id, client_id)

    async def get_snapshot(self, room_id: str, client_id: Optional[str]) -> RoomSnapshot:
        """Client view of the room; ``isOwner`` reflects ``client_id``."""
        async with self.lock(room_id):
            room = self._load(room_id)
        return RoomSnapshot.from_room(room, client_id or "")

    async def reset_room(self, room_id: str, client_id: Optional[str]) -> None:
        """Clear messages, summary, artifacts and rate limits; keep id, owner, createdAt."""
        async with self.lock(room_id):
            room = self._load_owned(room_id, client_id)
            fresh = create_room_data(room.roomId, room.ownerClientId)
            fresh.createdAt = room.createdAt
            self.store.put(fresh)
        logger.info(f"[Rooms] Reset room {room_id}")

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    async def add_message(self, room_id: str, client_id: Optional[str], content: str) -> Message:
        """Append a single user message."""
        async with self.lock(room_id):
            room = self._load_owned(room_id, client_id)
            self.validate_content(content)
            message = create_message(content, "user", room.messages, client_id)
            room.messages = bound_messages(room.messages + [message], self.max_messages)
            self.store.put(room)
        return message

    async def append_exchange(
        self,
        room_id: str,
        client_id: Optional[str],
        user_content: str,
        assistant_content: str,
    ) -> ExchangeResponse:
        """Store a user message and the assistant reply in one write."""
        async with self.lock(room_id):
            room = self._load_owned(room_id, client_id)
            self.validate_content(user_content)
            user_message = create_message(user_content, "user", room.messages, client_id)
            with_user = room.messages + [user_message]
            assistant_message = create_message(assistant_content, "assistant", with_user)
            room.messages = bound_messages(with_user + [assistant_message], self.max_messages)
            self.store.put(room)
        logger.info(
            f"[Rooms] Stored exchange seq={user_message.seq}/{assistant_message.seq} in room {room_id}"
        )
        return ExchangeResponse(userMessage=user_message, assistantMessage=assistant_message)

    # -----------------------------------------------------------------------
    # Artifacts
    # -----------------------------------------------------------------------

    async def update_artifacts(
        self,
        room_id: str,
        rolling_summary: Optional[str] = None,
        todos: Optional[List[str]] = None,
        last_review: Optional[ReviewRecord] = None,
    ) -> None:
        """Overwrite the given artifacts; ``None`` leaves one unchanged."""
        async with self.lock(room_id):
            room = self._load(room_id)
            if rolling_summary is not None:
                room.rollingSummary = rolling_summary
            if todos is not None:
                room.artifacts.todos = TodosRecord(ts=now_ms(), items=list(todos))
            if last_review is not None:
                room.artifacts.lastReview = last_review
            self.store.put(room)

    # -----------------------------------------------------------------------
    # Admission control
    # -----------------------------------------------------------------------

    async def check_rate_limit(
        self,
        room_id: str,
        client_id: Optional[str],
        action: str,
        now: Optional[int] = None,
    ) -> RateLimitResult:
        """Read, decide and persist the rate-limit entry atomically.

        Only the room owner is counted. Entries whose window has ended are
        dropped whenever the map is written.

        Raises:
            InvalidActionError: If ``action`` has no configured limit.
            RoomNotFoundError: If the room does not exist.
            NotOwnerError: If ``client_id`` does not own the room.
            RateLimitedError: If the request is rejected.
        """
        client_id = require_client_id(client_id)
        config = self.rate_limits.get(action)
        if config is None:
            raise InvalidActionError(action)

        key = rate_limit_key(client_id, action)
        if now is None:
            now = now_ms()
        async with self.lock(room_id):
            room = self._load_owned(room_id, client_id)
            result = check(room.rateLimits, key, config, now)
            room.rateLimits = {
                k: entry for k, entry in room.rateLimits.items() if entry.resetAt >= now
            }
            room.rateLimits[key] = result.updated
            self.store.put(room)

        if not result.allowed:
            logger.info(
                f"[Rooms] Rate limited {key} in room {room_id}, retry after {result.retryAfter}s"
            )
            raise RateLimitedError(action, result.retryAfter)
        return result


# Global room service instance (initialized on startup)
_room_service: Optional[RoomService] = None


def get_room_service() -> RoomService:
    """Get the global room service instance."""
    if _room_service is None:
        raise RuntimeError("Room service is not initialized")
    return _room_service


def set_room_service(service: Optional[RoomService]) -> None:
    """Set the global room service instance."""
    global _room_service
    _room_service = service
