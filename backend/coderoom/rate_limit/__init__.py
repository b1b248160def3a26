"""Fixed-window, per-client, per-action admission control."""
from .limiter import (
    RATE_LIMITS,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    check,
    check_rate_limit,
    rate_limit_key,
)

__all__ = [
    "RATE_LIMITS",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "check",
    "check_rate_limit",
    "rate_limit_key",
]
