"""Tests for the cached review operation."""
import hashlib
import json

import pytest

from coderoom.ai_provider import REVIEW_PROMPT, MockProvider, ProviderCallError
from coderoom.review.service import compute_input_hash, run_review
from coderoom.rooms.errors import NotOwnerError
from coderoom.rooms.logic import create_message
from coderoom.rooms.service import RoomService
from coderoom.rooms.store import InMemoryRoomStore


@pytest.fixture
def service():
    return RoomService(InMemoryRoomStore())


async def _room_with_exchange(service: RoomService, room_id: str = "r1") -> None:
    await service.create_room("owner", room_id=room_id)
    await service.append_exchange(room_id, "owner", "def add(a, b): return a - b", "Looks like a bug.")


class TestComputeInputHash:
    """Test the review cache key."""

    def test_known_digest(self):
        messages = [create_message("hi", "user", [])]
        messages.append(create_message("hello", "assistant", messages))
        expected = hashlib.sha256("user:hi|assistant:hello summary".encode("utf-8")).hexdigest()
        assert compute_input_hash(messages, " summary") == expected

    def test_deterministic(self):
        messages = [create_message("hi", "user", [])]
        assert compute_input_hash(messages, "s") == compute_input_hash(messages, "s")

    def test_sensitive_to_summary_and_messages(self):
        messages = [create_message("hi", "user", [])]
        base = compute_input_hash(messages, "")
        assert compute_input_hash(messages, "new summary") != base
        assert compute_input_hash(messages + [create_message("x", "assistant", messages)], "") != base

    def test_empty_conversation(self):
        assert compute_input_hash([], "") == hashlib.sha256(b"").hexdigest()


class TestRunReview:
    """Test cache hits, forced refresh and persistence."""

    @pytest.mark.asyncio
    async def test_first_review_calls_model_and_persists(self, service):
        provider = MockProvider()
        await _room_with_exchange(service)

        response = await run_review(service, "r1", "owner", provider=provider)

        assert response.cached is False
        assert response.review.content.summary == "The snippet is small and readable."
        assert len(provider.calls) == 1
        system, user = provider.calls[0]
        assert system.content == REVIEW_PROMPT
        assert user.content.startswith("Context summary:\n(none)\n\nConversation:\nUSER: def add")
        assert user.content.endswith("Provide your review as JSON.")

        room = await service.get_room("r1")
        assert room.artifacts.lastReview == response.review

    @pytest.mark.asyncio
    async def test_unchanged_room_is_cache_hit(self, service):
        provider = MockProvider()
        await _room_with_exchange(service)
        first = await run_review(service, "r1", "owner", provider=provider)

        second = await run_review(service, "r1", "owner", provider=provider)
        assert second.cached is True
        assert second.review == first.review
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, service):
        provider = MockProvider()
        await _room_with_exchange(service)
        await run_review(service, "r1", "owner", provider=provider)

        forced = await run_review(service, "r1", "owner", force=True, provider=provider)
        assert forced.cached is False
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_new_message_invalidates_cache(self, service):
        provider = MockProvider()
        await _room_with_exchange(service)
        first = await run_review(service, "r1", "owner", provider=provider)

        await service.append_exchange("r1", "owner", "and now?", "Fixed.")
        second = await run_review(service, "r1", "owner", provider=provider)
        assert second.cached is False
        assert second.review.inputHash != first.review.inputHash

    @pytest.mark.asyncio
    async def test_summary_included_in_prompt(self, service):
        provider = MockProvider()
        await _room_with_exchange(service)
        await service.update_artifacts("r1", rolling_summary="Fixing add()")

        await run_review(service, "r1", "owner", provider=provider)
        assert provider.calls[0][1].content.startswith("Context summary:\nFixing add()\n\n")

    @pytest.mark.asyncio
    async def test_unparseable_output_degrades(self, service):
        provider = MockProvider(replies=["I could not produce JSON, sorry."])
        await _room_with_exchange(service)

        response = await run_review(service, "r1", "owner", provider=provider)
        assert response.review.content.summary == "I could not produce JSON, sorry."
        assert response.review.content.issues == []

    @pytest.mark.asyncio
    async def test_structured_payload_coerced(self, service):
        """A response object (not text) is reviewed as its JSON text."""
        report = {"summary": "From object", "issues": []}
        provider = MockProvider(replies=[{"response": report}])
        await _room_with_exchange(service)

        response = await run_review(service, "r1", "owner", provider=provider)
        assert response.review.content.summary == "From object"

    @pytest.mark.asyncio
    async def test_model_failure_not_persisted(self, service):
        provider = MockProvider(replies=[RuntimeError("upstream down")])
        await _room_with_exchange(service)

        with pytest.raises(ProviderCallError):
            await run_review(service, "r1", "owner", provider=provider)
        assert (await service.get_room("r1")).artifacts.lastReview is None

    @pytest.mark.asyncio
    async def test_requires_owner(self, service):
        provider = MockProvider(replies=[json.dumps({"summary": "x"})])
        await _room_with_exchange(service)
        with pytest.raises(NotOwnerError):
            await run_review(service, "r1", "guest", provider=provider)
        assert provider.calls == []
