"""Pydantic models for the workspace assistant."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .entities import Company, Meeting, Note, Person, Project, Task

AssistantProvider = Literal["ollama", "gemini", "vertex"]
ChatRole = Literal["system", "user", "assistant"]

PROVIDER_DEFAULT_MODELS: Dict[str, str] = {
    "ollama": "qwen3:8b",
    "gemini": "gemini-2.5-flash",
    "vertex": "gemini-2.5-flash",
}


class RagDocument(BaseModel):
    """Flattened, searchable view of an entity or past conversation."""

    id: str
    source_type: str = Field(..., description="Display type, e.g. Note or Task")
    title: str
    updated_at: Optional[str] = None
    content: str = ""


class ResolvedCitation(BaseModel):
    """A cited source renumbered to a dense index."""

    citation_index: int = Field(..., ge=1, description="Dense 1-based index")
    original_citation_index: int = Field(..., ge=1, description="Index as written by the model")
    source: Any


class ChatMessage(BaseModel):
    role: ChatRole
    content: str


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(_CamelModel):
    """Request sent to the AI backend (camelCase on the wire)."""

    provider: Optional[AssistantProvider] = None
    model: Optional[str] = None
    google_ai_studio_api_key: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    auth_token: Optional[str] = None
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    conversation_title: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(_CamelModel):
    provider: str
    model: Optional[str] = None
    reply: str = ""


class ChatStreamChunk(_CamelModel):
    """One pushed element of a streamed chat reply."""

    provider: Optional[str] = None
    model: Optional[str] = None
    delta: Optional[str] = None
    done: Optional[bool] = None
    reply: Optional[str] = None
    error: Optional[str] = None


class UiMessage(BaseModel):
    id: str
    role: Literal["user", "assistant"]
    content: str = ""


class AssistantConversation(BaseModel):
    id: str
    title: str
    pinned: bool = False
    updated_at: str
    messages: List[UiMessage] = Field(default_factory=list)


class StoredAssistantState(BaseModel):
    """Per-user assistant state (conversations and model settings)."""

    active_conversation_id: Optional[str] = None
    conversations: List[AssistantConversation] = Field(default_factory=list)
    system_prompt: str
    provider: AssistantProvider = "ollama"
    model: str


class StreamAssistantReplyResult(BaseModel):
    final_reply: str
    raw_stream_content: str
    relevant_documents: List[RagDocument] = Field(default_factory=list)


class AssistantStreamEvent(BaseModel):
    """NDJSON line emitted by the assistant stream endpoint."""

    type: Literal["documents", "thinking", "reply", "done", "error"]
    content: Optional[str] = None
    documents: Optional[List[RagDocument]] = None
    citations: Optional[List[ResolvedCitation]] = None
    raw_content: Optional[str] = None
    error: Optional[str] = None


class WorkspaceSnapshot(BaseModel):
    """Entity pools the assistant may retrieve from."""

    projects: List[Project] = Field(default_factory=list)
    notes: List[Note] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    meetings: List[Meeting] = Field(default_factory=list)
    companies: List[Company] = Field(default_factory=list)
    people: List[Person] = Field(default_factory=list)
    assistant_state: Optional[StoredAssistantState] = None


class RetrieveRequest(BaseModel):
    query: str
    documents: List[RagDocument] = Field(default_factory=list)
    max_documents: int = Field(12, ge=1, le=100)
    max_chars: int = Field(7000, ge=1)


class RetrieveResponse(BaseModel):
    documents: List[RagDocument]
    context_block: str


class CitationRequest(BaseModel):
    content: str
    sources: List[RagDocument] = Field(default_factory=list)


class CitationResponse(BaseModel):
    content: str = Field(..., description="Content with dense citation numbers")
    citations: List[ResolvedCitation]


class AssistantStreamRequest(BaseModel):
    """Request payload for one streamed assistant turn."""

    prompt: str = Field(..., min_length=1, max_length=8000)
    conversation_id: str
    conversation_title: Optional[str] = None
    chat_history: List[ChatMessage] = Field(default_factory=list)
    workspace: WorkspaceSnapshot = Field(default_factory=WorkspaceSnapshot)
    provider: Optional[AssistantProvider] = None
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    gemini_api_key: Optional[str] = None


__all__ = [
    "AssistantProvider",
    "PROVIDER_DEFAULT_MODELS",
    "RagDocument",
    "ResolvedCitation",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ChatStreamChunk",
    "UiMessage",
    "AssistantConversation",
    "StoredAssistantState",
    "StreamAssistantReplyResult",
    "AssistantStreamEvent",
    "WorkspaceSnapshot",
    "RetrieveRequest",
    "RetrieveResponse",
    "CitationRequest",
    "CitationResponse",
    "AssistantStreamRequest",
]
