"""Pydantic schemas for rooms, messages and their derived artifacts.

A room is persisted as a single ``RoomData`` blob. Callers never update
individual fields in the store: they read the blob, modify it, and write it
back under the room's lock (see ``rooms.service``).

Note:
    Field names use camelCase (e.g., clientId, rollingSummary) to match the
    TypeScript/JavaScript convention used by the web client.
"""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from coderoom.rate_limit import RateLimitEntry
from coderoom.review.schemas import ReviewRecord

MessageRole = Literal["user", "assistant"]


class Message(BaseModel):
    """A single message in a room's log.

    Attributes:
        seq: Gapless, strictly increasing sequence number within the room.
        role: Who wrote the message.
        content: Message text.
        ts: Creation time in milliseconds since epoch.
        clientId: Identity of the sending client (user messages only).
    """
    seq: int = Field(..., ge=1)
    role: MessageRole
    content: str
    ts: int
    clientId: Optional[str] = None


class TodosRecord(BaseModel):
    """Most recent TODO extraction."""
    ts: int
    items: List[str] = Field(default_factory=list)


class Artifacts(BaseModel):
    """Derived state computed from the conversation."""
    lastReview: Optional[ReviewRecord] = None
    todos: Optional[TodosRecord] = None
    notes: str = ""


class RoomData(BaseModel):
    """Everything stored for one room."""
    roomId: str
    createdAt: int
    ownerClientId: str
    messages: List[Message] = Field(default_factory=list)
    rollingSummary: str = ""
    pinnedPreferences: str = ""
    artifacts: Artifacts = Field(default_factory=Artifacts)
    rateLimits: Dict[str, RateLimitEntry] = Field(default_factory=dict)


class RoomSnapshot(BaseModel):
    """Client-facing view of a room."""
    roomId: str
    createdAt: int
    ownerClientId: str
    messages: List[Message]
    rollingSummary: str
    pinnedPreferences: str
    artifacts: Artifacts
    isOwner: bool

    @classmethod
    def from_room(cls, room: RoomData, client_id: str) -> "RoomSnapshot":
        return cls(
            roomId=room.roomId,
            createdAt=room.createdAt,
            ownerClientId=room.ownerClientId,
            messages=list(room.messages),
            rollingSummary=room.rollingSummary,
            pinnedPreferences=room.pinnedPreferences,
            artifacts=room.artifacts,
            isOwner=bool(client_id) and room.ownerClientId == client_id,
        )


class MessageInput(BaseModel):
    """Request body for posting a message."""
    content: str = ""


class CreateRoomResponse(BaseModel):
    roomId: str
    joinUrl: str


class ExchangeResponse(BaseModel):
    """The stored user/assistant pair for one exchange."""
    userMessage: Message
    assistantMessage: Message
