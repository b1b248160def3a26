"""End-to-end tests for the HTTP API."""
import json

from coderoom.rate_limit import RateLimitConfig

OWNER = {"X-Client-Id": "owner-1"}
GUEST = {"X-Client-Id": "guest-1"}


def _create_room(client) -> str:
    response = client.post("/api/rooms", headers=OWNER)
    assert response.status_code == 201
    return response.json()["roomId"]


def _sse_events(body: str):
    return [
        json.loads(frame[len("data: "):])
        for frame in body.split("\n\n")
        if frame.startswith("data: ")
    ]


class TestHealth:
    """Test the health endpoint."""

    def test_health(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert isinstance(data["timestamp"], int)


class TestRoomEndpoints:
    """Test room creation, snapshots and reset."""

    def test_create_room(self, api_client):
        response = api_client.post("/api/rooms", headers=OWNER)
        assert response.status_code == 201
        data = response.json()
        assert data["joinUrl"] == f"/{data['roomId']}"

    def test_create_room_requires_client_id(self, api_client):
        response = api_client.post("/api/rooms")
        assert response.status_code == 400
        assert response.json() == {"error": "clientId required", "code": "MISSING_CLIENT_ID"}

    def test_snapshot_owner_and_guest(self, api_client):
        room_id = _create_room(api_client)

        owner_view = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert owner_view["isOwner"] is True
        assert owner_view["ownerClientId"] == "owner-1"
        assert owner_view["messages"] == []
        assert "rateLimits" not in owner_view

        guest_view = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=GUEST).json()
        assert guest_view["isOwner"] is False

    def test_snapshot_unknown_room(self, api_client):
        response = api_client.get("/api/rooms/missing/snapshot", headers=OWNER)
        assert response.status_code == 404
        assert response.json()["code"] == "ROOM_NOT_FOUND"

    def test_reset(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        api_client.post(f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER)

        response = api_client.post(f"/api/rooms/{room_id}/reset", headers=OWNER)
        assert response.status_code == 200

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert snapshot["messages"] == []
        assert snapshot["rollingSummary"] == ""
        assert snapshot["artifacts"]["todos"] is None

    def test_reset_by_guest_forbidden(self, api_client):
        room_id = _create_room(api_client)
        response = api_client.post(f"/api/rooms/{room_id}/reset", headers=GUEST)
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_OWNER"


class TestMessageEndpoint:
    """Test the blocking message exchange."""

    def test_exchange_stored(self, api_client, mock_provider):
        mock_provider.queue("Hi there!")
        room_id = _create_room(api_client)

        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER
        )
        assert response.status_code == 200
        data = response.json()
        assert data["userMessage"]["seq"] == 1
        assert data["userMessage"]["content"] == "Hello"
        assert data["userMessage"]["clientId"] == "owner-1"
        assert data["assistantMessage"]["seq"] == 2
        assert data["assistantMessage"]["content"] == "Hi there!"

    def test_context_sent_to_model(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        api_client.post(f"/api/rooms/{room_id}/message", json={"content": "First"}, headers=OWNER)
        api_client.post(f"/api/rooms/{room_id}/message", json={"content": "Second"}, headers=OWNER)

        # chat, summary and TODO calls per exchange
        chat_call = mock_provider.calls[3]
        assert chat_call[0].role == "system"
        assert [m.content for m in chat_call[1:]] == ["First", "Mock reply: First", "Second"]
        assert "Context from previous conversation:" in chat_call[0].content

    def test_background_artifacts_written(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        api_client.post(f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER)

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert snapshot["rollingSummary"] == "User is working on their code with the assistant."
        assert snapshot["artifacts"]["todos"]["items"] == ["Write tests for the discussed code"]

    def test_guest_cannot_post(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=GUEST
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Room owned by another session", "code": "NOT_OWNER"}
        assert mock_provider.calls == []

    def test_missing_client_id(self, api_client):
        room_id = _create_room(api_client)
        response = api_client.post(f"/api/rooms/{room_id}/message", json={"content": "Hello"})
        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_CLIENT_ID"

    def test_empty_content(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "   "}, headers=OWNER
        )
        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_CONTENT"
        assert mock_provider.calls == []

    def test_content_too_long(self, api_client):
        room_id = _create_room(api_client)
        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "x" * 10001}, headers=OWNER
        )
        assert response.status_code == 400
        assert response.json()["code"] == "CONTENT_TOO_LONG"

    def test_rate_limited(self, api_client, room_service):
        room_service.rate_limits["message"] = RateLimitConfig(maxRequests=2, windowMs=60_000)
        room_id = _create_room(api_client)
        for _ in range(2):
            ok = api_client.post(
                f"/api/rooms/{room_id}/message", json={"content": "Hi"}, headers=OWNER
            )
            assert ok.status_code == 200

        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "Hi"}, headers=OWNER
        )
        assert response.status_code == 429
        data = response.json()
        assert data["code"] == "RATE_LIMITED"
        assert 1 <= data["retryAfter"] <= 60
        assert response.headers["Retry-After"] == str(data["retryAfter"])

    def test_model_failure_is_502(self, api_client, mock_provider):
        mock_provider.queue(RuntimeError("upstream down"))
        room_id = _create_room(api_client)

        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER
        )
        assert response.status_code == 502
        assert response.json() == {"error": "AI service error", "code": "AI_ERROR"}

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert snapshot["messages"] == []

    def test_malformed_model_payload_is_502(self, api_client, mock_provider):
        mock_provider.queue({"response": None})
        room_id = _create_room(api_client)

        response = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER
        )
        assert response.status_code == 502
        assert response.json()["code"] == "AI_ERROR"

    def test_reply_truncated(self, api_client, app_config, mock_provider):
        app_config.ai.max_output_chars = 4
        mock_provider.queue("Long answer")
        room_id = _create_room(api_client)

        data = api_client.post(
            f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER
        ).json()
        assert data["assistantMessage"]["content"] == "Long"


class TestStreamEndpoint:
    """Test the SSE message stream."""

    def test_event_sequence_and_storage(self, api_client, mock_provider):
        mock_provider.queue("Hello stream")
        room_id = _create_room(api_client)

        response = api_client.post(
            f"/api/rooms/{room_id}/message/stream", json={"content": "Hi"}, headers=OWNER
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = _sse_events(response.text)
        assert events[0] == {"type": "meta", "seq": 1}
        assert all(e["type"] == "delta" for e in events[1:-1])
        assert "".join(e["content"] for e in events[1:-1]) == "Hello stream"
        assert events[-1] == {"type": "done", "totalChars": 12}

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert [m["content"] for m in snapshot["messages"]] == ["Hi", "Hello stream"]
        assert snapshot["artifacts"]["todos"]["items"] == ["Write tests for the discussed code"]

    def test_meta_seq_follows_existing_messages(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        api_client.post(f"/api/rooms/{room_id}/message", json={"content": "One"}, headers=OWNER)

        response = api_client.post(
            f"/api/rooms/{room_id}/message/stream", json={"content": "Two"}, headers=OWNER
        )
        assert _sse_events(response.text)[0] == {"type": "meta", "seq": 3}

    def test_upstream_error_writes_nothing(self, api_client, mock_provider):
        mock_provider.queue(RuntimeError("boom"))
        room_id = _create_room(api_client)

        response = api_client.post(
            f"/api/rooms/{room_id}/message/stream", json={"content": "Hi"}, headers=OWNER
        )
        events = _sse_events(response.text)
        assert events[0]["type"] == "meta"
        assert events[-1]["type"] == "error"
        assert events[-1]["code"] == "AI_ERROR"
        assert "partial" not in events[-1]

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert snapshot["messages"] == []
        assert len(mock_provider.calls) == 1

    def test_output_capped(self, api_client, app_config, mock_provider):
        app_config.ai.max_output_chars = 5
        mock_provider.queue("Hello world")
        room_id = _create_room(api_client)

        response = api_client.post(
            f"/api/rooms/{room_id}/message/stream", json={"content": "Hi"}, headers=OWNER
        )
        events = _sse_events(response.text)
        assert "".join(e["content"] for e in events if e["type"] == "delta") == "Hello"
        assert events[-1] == {"type": "done", "totalChars": 5}

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert snapshot["messages"][-1]["content"] == "Hello"

    def test_guest_rejected_before_stream(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        response = api_client.post(
            f"/api/rooms/{room_id}/message/stream", json={"content": "Hi"}, headers=GUEST
        )
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_OWNER"
        assert mock_provider.calls == []

    def test_empty_content_rejected_before_stream(self, api_client):
        room_id = _create_room(api_client)
        response = api_client.post(
            f"/api/rooms/{room_id}/message/stream", json={"content": ""}, headers=OWNER
        )
        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_CONTENT"


class TestReviewEndpoint:
    """Test the cached review endpoint."""

    def test_review_cached_then_forced(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        api_client.post(f"/api/rooms/{room_id}/message", json={"content": "Hello"}, headers=OWNER)

        first = api_client.post(f"/api/rooms/{room_id}/review", headers=OWNER)
        assert first.status_code == 200
        first_data = first.json()
        assert first_data["cached"] is False
        assert first_data["review"]["content"]["summary"] == "The snippet is small and readable."
        assert len(first_data["review"]["inputHash"]) == 64

        second = api_client.post(f"/api/rooms/{room_id}/review", json={}, headers=OWNER).json()
        assert second["cached"] is True
        assert second["review"] == first_data["review"]

        forced = api_client.post(
            f"/api/rooms/{room_id}/review", json={"force": True}, headers=OWNER
        ).json()
        assert forced["cached"] is False

    def test_review_stored_in_snapshot(self, api_client, mock_provider):
        room_id = _create_room(api_client)
        review = api_client.post(f"/api/rooms/{room_id}/review", headers=OWNER).json()["review"]

        snapshot = api_client.get(f"/api/rooms/{room_id}/snapshot", headers=OWNER).json()
        assert snapshot["artifacts"]["lastReview"] == review

    def test_review_rate_limited(self, api_client, room_service):
        room_service.rate_limits["review"] = RateLimitConfig(maxRequests=1, windowMs=60_000)
        room_id = _create_room(api_client)
        assert api_client.post(f"/api/rooms/{room_id}/review", headers=OWNER).status_code == 200

        response = api_client.post(f"/api/rooms/{room_id}/review", headers=OWNER)
        assert response.status_code == 429
        assert "Retry-After" in response.headers

    def test_review_by_guest_forbidden(self, api_client):
        room_id = _create_room(api_client)
        response = api_client.post(f"/api/rooms/{room_id}/review", headers=GUEST)
        assert response.status_code == 403
