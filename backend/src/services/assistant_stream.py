"""One retrieval-augmented assistant turn over a push-based chat stream."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ..models.assistant import (
    AssistantProvider,
    ChatMessage,
    ChatRequest,
    ChatStreamChunk,
    RagDocument,
    StreamAssistantReplyResult,
)
from .ai_client import get_ai_client
from .citation_utils import THINK_OPEN_TAG, parse_thinking_and_reply
from .rag_context import (
    DEFAULT_MAX_CHARS,
    DEFAULT_MAX_DOCUMENTS,
    build_rag_context_block,
    retrieve_relevant_documents,
)

logger = logging.getLogger(__name__)

RAG_SYSTEM_PROMPT_APPENDIX = (
    "Use the following retrieved workspace context as reference. Prioritize it when "
    "relevant, and if context is incomplete, state uncertainty briefly. When you use "
    "retrieved context, cite sources inline using bracket indices like [1], [2] that "
    "map to the list below. Do not invent citations."
)
THINKING_PLACEHOLDER = "Thinking..."
EMPTY_STREAM_MESSAGE = "No streamed response was received from the AI backend"

ChunkLike = Union[ChatStreamChunk, Dict[str, Any]]
SendStream = Callable[[ChatRequest, Callable[[ChunkLike], None]], Awaitable[None]]


class AssistantStreamError(Exception):
    """Raised when the AI backend reports an error mid-stream."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EmptyStreamError(AssistantStreamError):
    """Raised when the stream finished without any content or completion signal."""


def build_system_prompt(base_prompt: str, documents: Sequence[RagDocument]) -> str:
    base = base_prompt.strip()
    context_block = build_rag_context_block(documents)
    if not context_block:
        return base
    return f"{base}\n\n{RAG_SYSTEM_PROMPT_APPENDIX}\n\n{context_block}"


def _coerce_chunk(chunk: ChunkLike) -> ChatStreamChunk:
    if isinstance(chunk, ChatStreamChunk):
        return chunk
    return ChatStreamChunk.model_validate(chunk)


async def stream_assistant_reply(
    *,
    provider: AssistantProvider,
    model: str,
    system_prompt: str,
    conversation_id: str,
    conversation_title: str,
    user_id: str,
    prompt: str,
    chat_history: Sequence[ChatMessage],
    rag_documents: Sequence[RagDocument],
    auth_token: Optional[str] = None,
    gemini_api_key: Optional[str] = None,
    max_documents: int = DEFAULT_MAX_DOCUMENTS,
    max_chars: int = DEFAULT_MAX_CHARS,
    on_relevant_documents: Optional[Callable[[List[RagDocument]], None]] = None,
    on_thinking: Optional[Callable[[str], None]] = None,
    on_reply_delta: Optional[Callable[[str], None]] = None,
    send_stream: Optional[SendStream] = None,
) -> StreamAssistantReplyResult:
    """
    Retrieve context for ``prompt``, stream the model reply and split it.

    ``on_thinking`` and ``on_reply_delta`` receive the full parsed segments
    after every delta, not the increments. Raises ``AssistantStreamError``
    when a chunk carries an error and ``EmptyStreamError`` when the stream
    produced neither text nor a done signal.
    """
    if send_stream is None:
        send_stream = get_ai_client().send_chat_stream

    relevant_documents = retrieve_relevant_documents(
        prompt, rag_documents, max_documents=max_documents, max_chars=max_chars
    )
    if on_relevant_documents is not None:
        on_relevant_documents(relevant_documents)

    resolved_system_prompt = build_system_prompt(system_prompt, relevant_documents)

    request = ChatRequest(
        provider=provider,
        model=model.strip() or None,
        google_ai_studio_api_key=(gemini_api_key or None) if provider == "gemini" else None,
        system_prompt=resolved_system_prompt or None,
        auth_token=auth_token,
        user_id=user_id,
        conversation_id=conversation_id,
        conversation_title=conversation_title,
        messages=[*chat_history, ChatMessage(role="user", content=prompt)],
    )

    buffer: List[str] = []
    reported_done = False

    def on_chunk(raw_chunk: ChunkLike) -> None:
        nonlocal reported_done
        chunk = _coerce_chunk(raw_chunk)

        if chunk.error:
            raise AssistantStreamError(chunk.error, {"conversation_id": conversation_id})

        if isinstance(chunk.delta, str) and chunk.delta:
            buffer.append(chunk.delta)
            content = "".join(buffer)
            parsed = parse_thinking_and_reply(content)
            if on_thinking is not None:
                if parsed.thinking:
                    on_thinking(parsed.thinking)
                elif THINK_OPEN_TAG in content:
                    on_thinking(THINKING_PLACEHOLDER)
            if on_reply_delta is not None:
                on_reply_delta(parsed.reply)

        if chunk.done:
            reported_done = True

    await send_stream(request, on_chunk)

    raw_stream_content = "".join(buffer)
    if not reported_done and not raw_stream_content:
        raise EmptyStreamError(EMPTY_STREAM_MESSAGE, {"conversation_id": conversation_id})

    parsed = parse_thinking_and_reply(raw_stream_content)
    logger.info(
        "Assistant turn completed",
        extra={
            "conversation_id": conversation_id,
            "provider": provider,
            "documents": len(relevant_documents),
            "reply_chars": len(parsed.reply),
        },
    )
    return StreamAssistantReplyResult(
        final_reply=parsed.reply or raw_stream_content,
        raw_stream_content=raw_stream_content,
        relevant_documents=relevant_documents,
    )


__all__ = [
    "RAG_SYSTEM_PROMPT_APPENDIX",
    "AssistantStreamError",
    "EmptyStreamError",
    "build_system_prompt",
    "stream_assistant_reply",
]
