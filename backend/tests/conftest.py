"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from coderoom.ai_provider import MockProvider, set_provider
from coderoom.config import AppSettings, set_config
from coderoom.main import app
from coderoom.rooms.service import RoomService, set_room_service
from coderoom.rooms.store import InMemoryRoomStore


@pytest.fixture
def app_config():
    """Default settings installed as the process-wide config."""
    config = AppSettings()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def mock_provider():
    """A scripted MockProvider installed as the global provider."""
    provider = MockProvider()
    set_provider(provider)
    yield provider
    set_provider(None)


@pytest.fixture
def room_service():
    """A RoomService over a fresh in-memory store, installed globally."""
    service = RoomService(InMemoryRoomStore())
    set_room_service(service)
    yield service
    set_room_service(None)


@pytest.fixture
def api_client(app_config, room_service, mock_provider):
    """Provide a TestClient for the main FastAPI app.

    The client is entered as a context manager so the lifespan runs; it picks
    up the service and provider installed by the fixtures above.
    """
    with TestClient(app) as client:
        yield client
