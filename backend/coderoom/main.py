"""CodeRoom Backend Application.

This is the main entry point for the CodeRoom backend service.
CodeRoom is a pair-programming chat service: each room holds one bounded
conversation with an AI assistant, plus artifacts derived from it (rolling
summary, TODO list, structured code review).

Modules:
    - rooms: Room state, ownership, rate limits and the blocking message API
    - chat: Context building and the SSE streaming message API
    - ai_provider: Model invocation (Workers AI or a mock) and prompts
    - review: Cached structured code review
    - summary: Background summary and TODO extraction
    - rate_limit: Fixed-window admission control
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from coderoom.ai_provider import (
    AIProvider,
    AIProviderError,
    MockProvider,
    WorkersAIProvider,
    get_provider,
    set_provider,
)
from coderoom.chat.router import router as chat_router
from coderoom.config import AppSettings, get_config
from coderoom.rate_limit import RateLimitConfig
from coderoom.review.router import router as review_router
from coderoom.rooms.errors import RoomError, error_body, room_error_handler
from coderoom.rooms.router import router as rooms_router
from coderoom.rooms.service import RoomService, get_room_service, set_room_service
from coderoom.rooms.store import DuckDBRoomStore, InMemoryRoomStore, RoomStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# httpx/httpcore log every request line and connection event of the
# model client.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def build_store(config: AppSettings) -> RoomStore:
    """Create the room store selected by ``storage.backend``."""
    if config.storage.backend == "duckdb":
        return DuckDBRoomStore(config.storage.path)
    return InMemoryRoomStore()


def build_provider(config: AppSettings) -> AIProvider:
    """Create the model provider selected by ``ai.provider``."""
    ai = config.ai
    if ai.provider == "workers_ai":
        secrets = config.secrets.workers_ai
        provider = WorkersAIProvider(
            account_id=secrets.account_id or "",
            api_token=secrets.api_token or "",
            model=ai.model,
            base_url=ai.base_url,
            max_tokens=ai.max_tokens,
            timeout=ai.timeout_seconds,
        )
        if not provider.health_check():
            logger.warning("Workers AI credentials missing; model calls will fail")
        return provider
    return MockProvider()


def build_room_service(config: AppSettings, store: RoomStore) -> RoomService:
    limits = config.rate_limits
    return RoomService(
        store,
        max_messages=config.rooms.max_messages,
        max_chars_per_message=config.rooms.max_chars_per_message,
        rate_limits={
            "message": RateLimitConfig(
                maxRequests=limits.message.max_requests, windowMs=limits.message.window_ms
            ),
            "review": RateLimitConfig(
                maxRequests=limits.review.max_requests, windowMs=limits.review.window_ms
            ),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in coderoom.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    # Tests install their own service and provider before the app starts.
    created_service = False
    try:
        get_room_service()
    except RuntimeError:
        set_room_service(build_room_service(config, build_store(config)))
        created_service = True
        logger.info(f"Room store ready: backend={config.storage.backend}")

    if get_provider() is None:
        provider = build_provider(config)
        set_provider(provider)
        logger.info(f"AI provider ready: {provider.name}")

    yield  # Application runs here

    # Shutdown
    if created_service:
        get_room_service().store.close()
        set_room_service(None)
    logger.info("Application shutdown complete")


async def ai_error_handler(request, exc: AIProviderError) -> JSONResponse:
    """Convert a model failure into a JSON error response."""
    logger.error(f"AI error on {request.url.path}: {exc.message}")
    return JSONResponse(error_body("AI service error", exc.code), status_code=exc.status_code)


# Create FastAPI application with metadata
app = FastAPI(
    title="CodeRoom API",
    description="Backend service for CodeRoom - AI pair-programming rooms",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(RoomError, room_error_handler)
app.add_exception_handler(AIProviderError, ai_error_handler)

# Register all routers
app.include_router(rooms_router)
app.include_router(chat_router)
app.include_router(review_router)


@app.get("/api/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object with the server time in milliseconds.
    """
    return {"status": "ok", "timestamp": int(time.time() * 1000)}
