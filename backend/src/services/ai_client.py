"""HTTP client for the AI backend's chat endpoints."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from ..models.assistant import ChatRequest, ChatResponse, ChatStreamChunk
from .config import AppConfig, get_config

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/ai/chat"
CHAT_STREAM_PATH = "/api/ai/chat/stream"
FALLBACK_STATUSES = (404, 405)

ChunkCallback = Callable[[ChatStreamChunk], Union[None, Awaitable[None]]]


class AIClientError(Exception):
    """Raised when the AI backend rejects or fails a request."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AIClient:
    """
    Thin async wrapper over ``POST /api/ai/chat`` and ``/api/ai/chat/stream``.

    The stream endpoint answers with newline-delimited JSON chunks which are
    pushed, one by one, to the caller's ``on_chunk`` callback. Backends that
    do not expose the stream route (404/405) are served through the
    non-streaming endpoint as a single terminal chunk.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "AIClient":
        config = config or get_config()
        return cls(base_url=config.ai_base_url, timeout=config.ai_request_timeout)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _payload(request: ChatRequest) -> Dict[str, Any]:
        return request.model_dump(by_alias=True, exclude_none=True)

    async def send_chat(self, request: ChatRequest) -> ChatResponse:
        async with self._client() as client:
            response = await client.post(CHAT_PATH, json=self._payload(request))

        if not response.is_success:
            logger.error(f"AI chat request failed: {response.status_code}")
            raise AIClientError(
                response.text or "AI request failed",
                {"status_code": response.status_code},
            )
        return ChatResponse.model_validate(response.json())

    async def send_chat_stream(self, request: ChatRequest, on_chunk: ChunkCallback) -> None:
        """Stream a chat reply, delivering every parsed chunk to ``on_chunk``."""
        async with self._client() as client:
            async with client.stream("POST", CHAT_STREAM_PATH, json=self._payload(request)) as response:
                use_fallback = response.status_code in FALLBACK_STATUSES
                if use_fallback:
                    logger.info(
                        "Stream endpoint unavailable, falling back to non-streaming chat",
                        extra={"status_code": response.status_code},
                    )
                elif not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"AI streaming request failed: {response.status_code}")
                    raise AIClientError(
                        body or "AI streaming request failed",
                        {"status_code": response.status_code},
                    )
                else:
                    async for line in response.aiter_lines():
                        chunk = self._parse_line(line)
                        if chunk is not None:
                            await _deliver(on_chunk, chunk)

        if use_fallback:
            reply = await self.send_chat(request)
            await _deliver(
                on_chunk,
                ChatStreamChunk(
                    provider=reply.provider,
                    model=reply.model,
                    delta=reply.reply,
                    done=True,
                    reply=reply.reply,
                ),
            )

    @staticmethod
    def _parse_line(line: str) -> Optional[ChatStreamChunk]:
        trimmed = line.strip()
        if not trimmed:
            return None
        try:
            return ChatStreamChunk.model_validate_json(trimmed)
        except ValidationError:
            logger.debug("Skipping malformed stream line", extra={"line": trimmed[:200]})
            return None


async def _deliver(on_chunk: ChunkCallback, chunk: ChatStreamChunk) -> None:
    result = on_chunk(chunk)
    if inspect.isawaitable(result):
        await result


_ai_client: Optional[AIClient] = None


def get_ai_client() -> AIClient:
    """Get or create the shared AI client."""
    global _ai_client
    if _ai_client is None:
        _ai_client = AIClient.from_config()
    return _ai_client


__all__ = ["AIClient", "AIClientError", "ChunkCallback", "get_ai_client"]
