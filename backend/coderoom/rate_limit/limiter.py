"""Fixed-window rate limiter.

The limiter is a pure decision function: given the current entry for a
``(clientId, action)`` key, the action's config and the current time, it
returns whether the request is admitted and the entry that should be stored
next. It never mutates its inputs and owns no state.

Persisting ``RateLimitResult.updated`` is the caller's responsibility and must
happen inside the same per-room serialization boundary as the read, otherwise
two concurrent requests can both observe a stale count and both be admitted.

Timestamps are integer milliseconds since the epoch.
"""
import math
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field


class RateLimitEntry(BaseModel):
    """Request count inside the current window for one key.

    Attributes:
        count: Requests admitted in the current window.
        resetAt: Millisecond timestamp at which the window ends.
    """
    count: int = Field(..., ge=0)
    resetAt: int = Field(..., description="Window end (ms since epoch)")


class RateLimitConfig(BaseModel):
    """Static limit for one action kind."""
    maxRequests: int = Field(..., ge=1)
    windowMs: int = Field(..., ge=1)


class RateLimitResult(BaseModel):
    """Outcome of a rate-limit decision.

    Attributes:
        allowed: Whether the request is admitted.
        retryAfter: Seconds until the window resets (only when rejected).
        updated: Entry the caller must persist for the key.
    """
    allowed: bool
    retryAfter: Optional[int] = None
    updated: RateLimitEntry


RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "message": RateLimitConfig(maxRequests=10, windowMs=60_000),
    "review": RateLimitConfig(maxRequests=5, windowMs=60_000),
}


def rate_limit_key(client_id: str, action: str) -> str:
    """Composite storage key for a client's action kind."""
    return f"{client_id}:{action}"


def check_rate_limit(
    entry: Optional[RateLimitEntry],
    config: RateLimitConfig,
    now: int,
) -> RateLimitResult:
    """Decide whether one more request fits in the current window.

    Args:
        entry: The stored entry for the key, or None if there is none.
        config: Limit for the action kind.
        now: Current time in milliseconds.

    Returns:
        RateLimitResult with the decision and the entry to persist.
    """
    if entry is None or now > entry.resetAt:
        return RateLimitResult(
            allowed=True,
            updated=RateLimitEntry(count=1, resetAt=now + config.windowMs),
        )

    if entry.count >= config.maxRequests:
        return RateLimitResult(
            allowed=False,
            retryAfter=math.ceil((entry.resetAt - now) / 1000),
            updated=entry,
        )

    return RateLimitResult(
        allowed=True,
        updated=RateLimitEntry(count=entry.count + 1, resetAt=entry.resetAt),
    )


def check(
    store: Mapping[str, RateLimitEntry],
    key: str,
    config: RateLimitConfig,
    now: int,
) -> RateLimitResult:
    """Look up ``key`` in a caller-owned mapping and decide.

    The mapping is only read; write ``result.updated`` back yourself.
    """
    return check_rate_limit(store.get(key), config, now)
