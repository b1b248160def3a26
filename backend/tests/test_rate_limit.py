"""Tests for the fixed-window rate limiter."""
import pytest
from pydantic import ValidationError

from coderoom.rate_limit import (
    RATE_LIMITS,
    RateLimitConfig,
    RateLimitEntry,
    check,
    check_rate_limit,
    rate_limit_key,
)

CONFIG = RateLimitConfig(maxRequests=3, windowMs=60_000)


class TestCheckRateLimit:
    """Test the pure decision function."""

    def test_first_request_opens_window(self):
        """No entry means a fresh window with count 1."""
        result = check_rate_limit(None, CONFIG, 1_000)
        assert result.allowed is True
        assert result.retryAfter is None
        assert result.updated == RateLimitEntry(count=1, resetAt=61_000)

    def test_increments_within_window(self):
        """An admitted request inside the window bumps the count only."""
        entry = RateLimitEntry(count=1, resetAt=61_000)
        result = check_rate_limit(entry, CONFIG, 2_000)
        assert result.allowed is True
        assert result.updated == RateLimitEntry(count=2, resetAt=61_000)

    def test_rejects_at_limit(self):
        """At maxRequests the request is rejected and the entry kept."""
        entry = RateLimitEntry(count=3, resetAt=61_000)
        result = check_rate_limit(entry, CONFIG, 30_500)
        assert result.allowed is False
        assert result.retryAfter == 31
        assert result.updated == entry

    def test_retry_after_rounds_up(self):
        """retryAfter is the ceiling of the remaining window in seconds."""
        entry = RateLimitEntry(count=3, resetAt=61_000)
        assert check_rate_limit(entry, CONFIG, 60_999).retryAfter == 1

    def test_window_boundary_still_limited(self):
        """At exactly resetAt the old window still applies."""
        entry = RateLimitEntry(count=3, resetAt=61_000)
        result = check_rate_limit(entry, CONFIG, 61_000)
        assert result.allowed is False
        assert result.retryAfter == 0

    def test_expired_window_resets(self):
        """After resetAt a new window starts."""
        entry = RateLimitEntry(count=3, resetAt=61_000)
        result = check_rate_limit(entry, CONFIG, 61_001)
        assert result.allowed is True
        assert result.updated == RateLimitEntry(count=1, resetAt=121_001)

    def test_does_not_mutate_input(self):
        """The caller's entry is left untouched."""
        entry = RateLimitEntry(count=1, resetAt=61_000)
        check_rate_limit(entry, CONFIG, 2_000)
        assert entry.count == 1


class TestCheckWithStore:
    """Test lookup in a caller-owned mapping."""

    def test_keys_are_independent(self):
        """Each (client, action) key has its own window."""
        store = {rate_limit_key("alice", "message"): RateLimitEntry(count=3, resetAt=61_000)}
        assert check(store, rate_limit_key("alice", "message"), CONFIG, 1_000).allowed is False
        assert check(store, rate_limit_key("alice", "review"), CONFIG, 1_000).allowed is True
        assert check(store, rate_limit_key("bob", "message"), CONFIG, 1_000).allowed is True

    def test_store_not_written(self):
        """check() only reads; persisting is up to the caller."""
        store = {}
        check(store, "k", CONFIG, 1_000)
        assert store == {}

    def test_sequence_until_rejected(self):
        """Persisting each result admits exactly maxRequests per window."""
        store = {}
        allowed = []
        for now in range(1_000, 6_000, 1_000):
            result = check(store, "k", CONFIG, now)
            store["k"] = result.updated
            allowed.append(result.allowed)
        assert allowed == [True, True, True, False, False]


class TestConfig:
    """Test limit configuration."""

    def test_default_limits(self):
        assert RATE_LIMITS["message"] == RateLimitConfig(maxRequests=10, windowMs=60_000)
        assert RATE_LIMITS["review"] == RateLimitConfig(maxRequests=5, windowMs=60_000)

    def test_key_format(self):
        assert rate_limit_key("c1", "review") == "c1:review"

    def test_invalid_config_rejected(self):
        """A zero limit is not a valid configuration."""
        with pytest.raises(ValidationError):
            RateLimitConfig(maxRequests=0, windowMs=1000)
