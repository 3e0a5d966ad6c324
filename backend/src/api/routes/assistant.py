"""Workspace assistant endpoints: retrieval, citations, streaming and state."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse

from ..middleware import AuthContext, get_auth_context
from ...models.assistant import (
    AssistantStreamEvent,
    AssistantStreamRequest,
    CitationRequest,
    CitationResponse,
    RagDocument,
    RetrieveRequest,
    RetrieveResponse,
    StoredAssistantState,
    WorkspaceSnapshot,
)
from ...services.ai_client import AIClientError, get_ai_client
from ...services.assistant_state import (
    DEFAULT_SYSTEM_PROMPT,
    AssistantStateCache,
    derive_conversation_title,
)
from ...services.assistant_stream import (
    AssistantStreamError,
    SendStream,
    stream_assistant_reply,
)
from ...services.citation_utils import remap_citation_indexes, resolve_cited_sources
from ...services.config import AppConfig, get_config
from ...services.rag_context import build_rag_context_block, retrieve_relevant_documents
from ...services.rag_documents import build_assistant_rag_documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assistant", tags=["assistant"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def get_send_stream() -> SendStream:
    """Streaming transport used for assistant turns."""
    return get_ai_client().send_chat_stream


def get_assistant_state_cache(request: Request) -> AssistantStateCache:
    return request.app.state.assistant_state_cache


def _documents_for(
    workspace: WorkspaceSnapshot, state: Optional[StoredAssistantState]
) -> List[RagDocument]:
    return build_assistant_rag_documents(
        projects=workspace.projects,
        notes=workspace.notes,
        tasks=workspace.tasks,
        meetings=workspace.meetings,
        companies=workspace.companies,
        people=workspace.people,
        assistant_state=state,
    )


@router.post("/documents", response_model=List[RagDocument])
async def build_documents(
    workspace: WorkspaceSnapshot,
    auth: AuthContext = Depends(get_auth_context),
    cache: AssistantStateCache = Depends(get_assistant_state_cache),
):
    """Flatten a workspace snapshot into the retrieval pool."""
    state = workspace.assistant_state or cache.get(auth.user_id)
    return _documents_for(workspace, state)


@router.post("/retrieve", response_model=RetrieveResponse)
async def retrieve(request: RetrieveRequest):
    """Rank documents for a query and render the numbered context block."""
    documents = retrieve_relevant_documents(
        request.query,
        request.documents,
        max_documents=request.max_documents,
        max_chars=request.max_chars,
    )
    return RetrieveResponse(documents=documents, context_block=build_rag_context_block(documents))


@router.post("/citations", response_model=CitationResponse)
async def resolve_citations(request: CitationRequest):
    """Resolve ``[n]`` citations against ``sources`` and renumber them densely."""
    citations = resolve_cited_sources(request.content, request.sources)
    return CitationResponse(
        content=remap_citation_indexes(request.content, citations),
        citations=citations,
    )


def _ndjson(event: AssistantStreamEvent) -> str:
    return event.model_dump_json(exclude_none=True) + "\n"


@router.post("/stream")
async def stream_reply(
    request: AssistantStreamRequest,
    auth: AuthContext = Depends(get_auth_context),
    cache: AssistantStateCache = Depends(get_assistant_state_cache),
    send_stream: SendStream = Depends(get_send_stream),
    config: AppConfig = Depends(get_config),
):
    """
    Run one assistant turn and stream it as newline-delimited JSON.

    Event order: one ``documents`` event, then ``thinking``/``reply`` events
    carrying the full parsed segments so far, then a final ``done`` event with
    the citation-remapped reply, or a single ``error`` event.
    """
    state = request.workspace.assistant_state or cache.get(auth.user_id)
    documents = _documents_for(request.workspace, state)

    provider = request.provider or (state.provider if state else config.assistant_provider)
    model = request.model or (state.model if state else None) or config.default_model
    system_prompt = request.system_prompt or (state.system_prompt if state else DEFAULT_SYSTEM_PROMPT)
    conversation_title = (request.conversation_title or "").strip() or derive_conversation_title(
        request.prompt
    )

    queue: asyncio.Queue[Optional[AssistantStreamEvent]] = asyncio.Queue()

    def emit(event: AssistantStreamEvent) -> None:
        queue.put_nowait(event)

    async def run_turn() -> None:
        try:
            result = await stream_assistant_reply(
                provider=provider,
                model=model,
                system_prompt=system_prompt,
                conversation_id=request.conversation_id,
                conversation_title=conversation_title,
                user_id=auth.user_id,
                prompt=request.prompt,
                chat_history=request.chat_history,
                rag_documents=documents,
                auth_token=auth.token,
                gemini_api_key=request.gemini_api_key,
                max_documents=config.rag_max_documents,
                max_chars=config.rag_max_chars,
                on_relevant_documents=lambda docs: emit(
                    AssistantStreamEvent(type="documents", documents=docs)
                ),
                on_thinking=lambda text: emit(AssistantStreamEvent(type="thinking", content=text)),
                on_reply_delta=lambda text: emit(AssistantStreamEvent(type="reply", content=text)),
                send_stream=send_stream,
            )
            citations = resolve_cited_sources(result.final_reply, result.relevant_documents)
            emit(
                AssistantStreamEvent(
                    type="done",
                    content=remap_citation_indexes(result.final_reply, citations),
                    citations=citations,
                    raw_content=result.raw_stream_content,
                )
            )
        except (AssistantStreamError, AIClientError) as exc:
            logger.warning(f"Assistant turn failed for user {auth.user_id}: {exc.message}")
            emit(AssistantStreamEvent(type="error", error=exc.message))
        except Exception as exc:
            logger.exception("Assistant stream crashed")
            emit(AssistantStreamEvent(type="error", error=f"Assistant error: {exc}"))
        finally:
            queue.put_nowait(None)

    async def event_lines() -> AsyncGenerator[str, None]:
        task = asyncio.create_task(run_turn())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield _ndjson(event)
        finally:
            if not task.done():
                task.cancel()

    logger.info(
        f"Assistant stream from user {auth.user_id}: {request.prompt[:100]}",
        extra={"conversation_id": request.conversation_id, "documents": len(documents)},
    )
    return StreamingResponse(event_lines(), media_type=NDJSON_MEDIA_TYPE)


@router.get("/state", response_model=StoredAssistantState)
async def get_state(
    auth: AuthContext = Depends(get_auth_context),
    cache: AssistantStateCache = Depends(get_assistant_state_cache),
):
    """Return the caller's assistant state, creating a default one if needed."""
    return cache.load(auth.user_id)


@router.put("/state", response_model=StoredAssistantState)
async def put_state(
    payload: Dict[str, Any] = Body(...),
    auth: AuthContext = Depends(get_auth_context),
    cache: AssistantStateCache = Depends(get_assistant_state_cache),
):
    """Replace the caller's assistant state; malformed parts fall back to defaults."""
    return cache.put(auth.user_id, payload)


@router.delete("/state")
async def delete_state(
    auth: AuthContext = Depends(get_auth_context),
    cache: AssistantStateCache = Depends(get_assistant_state_cache),
):
    """Drop the caller's cached assistant state (sign-out)."""
    invalidated = cache.invalidate(auth.user_id)
    return {"status": "ok", "invalidated": invalidated}
