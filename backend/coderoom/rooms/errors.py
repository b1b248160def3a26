"""Exceptions raised by room operations.

Every error carries a stable ``code`` that clients can switch on and the HTTP
status the API layer responds with. None of them are retried by the server.
"""
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class RoomError(Exception):
    """Base exception for room errors."""
    def __init__(self, message: str, code: str, status_code: int = 400):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class MissingClientIdError(RoomError):
    """Raised when a request carries no client identity."""
    def __init__(self, message: str = "clientId required"):
        super().__init__(message, "MISSING_CLIENT_ID", status_code=400)


class InvalidContentError(RoomError):
    """Raised when message content fails validation."""
    def __init__(self, message: str, code: str):
        super().__init__(message, code, status_code=400)


class RoomNotFoundError(RoomError):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__("Room not found", "ROOM_NOT_FOUND", status_code=404)


class RoomExistsError(RoomError):
    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__("Room already exists", "ROOM_EXISTS", status_code=409)


class NotOwnerError(RoomError):
    """Raised when a client acts on a room it does not own."""
    def __init__(self):
        super().__init__("Room owned by another session", "NOT_OWNER", status_code=403)


class InvalidActionError(RoomError):
    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Invalid action: {action}", "INVALID_ACTION", status_code=400)


class RateLimitedError(RoomError):
    """Raised when a client exceeds the rate limit for an action.

    Attributes:
        retry_after: Seconds until the client may retry.
    """
    def __init__(self, action: str, retry_after: Optional[int]):
        self.action = action
        self.retry_after = retry_after or 1
        super().__init__(
            f"Rate limit exceeded for {action}. Retry after {self.retry_after}s",
            "RATE_LIMITED",
            status_code=429,
        )


def error_body(message: str, code: Optional[str] = None) -> dict:
    """Build the ``{"error", "code"}`` body shared by all error responses."""
    body = {"error": message}
    if code:
        body["code"] = code
    return body


async def room_error_handler(request: Request, exc: RoomError) -> JSONResponse:
    """Convert a RoomError into a JSON error response."""
    body = error_body(exc.message, exc.code)
    headers = None
    if isinstance(exc, RateLimitedError):
        body["retryAfter"] = exc.retry_after
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(body, status_code=exc.status_code, headers=headers)
