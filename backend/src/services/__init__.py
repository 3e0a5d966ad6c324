"""Service layer for business logic and external integrations."""

from .ai_client import AIClient, AIClientError, get_ai_client
from .assistant_state import AssistantStateCache, normalize_assistant_state
from .assistant_stream import AssistantStreamError, EmptyStreamError, stream_assistant_reply
from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, init_database
from .entity_repository import RelationalEntityRepository
from .entity_store import EntityStore
from .local_relation_mutator import LocalRelationMutator
from .relation_mutator import RelationMutator

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "EntityStore",
    "RelationMutator",
    "LocalRelationMutator",
    "RelationalEntityRepository",
    "AIClient",
    "AIClientError",
    "get_ai_client",
    "AssistantStateCache",
    "normalize_assistant_state",
    "AssistantStreamError",
    "EmptyStreamError",
    "stream_assistant_reply",
]
