"""Pydantic models for data validation and serialization."""

from .assistant import (
    AssistantConversation,
    AssistantStreamEvent,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatStreamChunk,
    RagDocument,
    ResolvedCitation,
    StoredAssistantState,
    UiMessage,
    WorkspaceSnapshot,
)
from .entities import (
    COLLECTION_MODELS,
    ENTITY_COLLECTIONS,
    BaseEntity,
    CollectionName,
    Company,
    Meeting,
    Note,
    Person,
    Project,
    Task,
)
from .relations import InboundCleanupSpec, PlannedRelationMutation, RelationConfig, RelationPlan

__all__ = [
    "CollectionName",
    "ENTITY_COLLECTIONS",
    "COLLECTION_MODELS",
    "BaseEntity",
    "Project",
    "Note",
    "Task",
    "Meeting",
    "Company",
    "Person",
    "RelationConfig",
    "PlannedRelationMutation",
    "InboundCleanupSpec",
    "RelationPlan",
    "RagDocument",
    "ResolvedCitation",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ChatStreamChunk",
    "UiMessage",
    "AssistantConversation",
    "StoredAssistantState",
    "AssistantStreamEvent",
    "WorkspaceSnapshot",
]
