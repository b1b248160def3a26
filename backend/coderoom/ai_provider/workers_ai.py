"""Cloudflare Workers AI provider implementation.

Calls the Workers AI REST endpoint with httpx. The blocking call returns the
``{"response": ...}`` payload; the streaming call returns the raw SSE bytes
(``data: {"response": "..."}`` lines followed by ``data: [DONE]``).

Usage:
    provider = WorkersAIProvider(account_id="...", api_token="...")
    payload = await provider.run(messages)
"""
import logging
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from .base import AIProvider, ChatContextMessage

logger = logging.getLogger(__name__)


class WorkersAIProvider(AIProvider):
    """AIProvider implementation using the Workers AI REST API.

    Attributes:
        account_id: Cloudflare account identifier.
        api_token: API token with Workers AI permission.
        model: Model identifier.
        base_url: API base URL.
        max_tokens: Maximum tokens the model may generate.
        timeout: Request timeout in seconds.
    """

    name = "workers_ai"

    DEFAULT_MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
    DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the Workers AI provider.

        Args:
            account_id: Cloudflare account identifier.
            api_token: API token for authentication.
            model: Model to use. Defaults to Llama 3.3 70B.
            base_url: Optional custom API base URL.
            max_tokens: Maximum tokens per response.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.account_id = account_id
        self.api_token = api_token
        self.model = model or self.DEFAULT_MODEL
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/ai/run/{self.model}"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_token}"}

    def _body(self, messages: Sequence[ChatContextMessage], stream: bool) -> dict:
        body = {
            "messages": [m.to_dict() for m in messages],
            "max_tokens": self.max_tokens,
        }
        if stream:
            body["stream"] = True
        return body

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def health_check(self) -> bool:
        """Workers AI has no cheap ping; require credentials to be configured."""
        healthy = bool(self.account_id and self.api_token)
        if not healthy:
            logger.warning("Workers AI provider is missing account_id or api_token")
        return healthy

    async def run(self, messages: Sequence[ChatContextMessage]) -> Any:
        """Call the model and return the ``{"response": ...}`` payload.

        Raises:
            httpx.HTTPError: If the request fails or returns an error status.
        """
        async with self._client() as client:
            resp = await client.post(
                self.url,
                headers=self._headers(),
                json=self._body(messages, stream=False),
            )
            resp.raise_for_status()
            data = resp.json()

        # The REST API wraps the model output in {"result": ..., "success": ...}
        if isinstance(data, dict) and isinstance(data.get("result"), dict):
            return data["result"]
        return data

    async def stream(self, messages: Sequence[ChatContextMessage]) -> AsyncIterator[bytes]:
        """Stream raw SSE bytes from the model.

        The HTTP response is closed when the generator finishes or is closed.
        """
        async with self._client() as client:
            async with client.stream(
                "POST",
                self.url,
                headers=self._headers(),
                json=self._body(messages, stream=True),
            ) as resp:
                resp.raise_for_status()
                async for chunk in resp.aiter_bytes():
                    yield chunk
