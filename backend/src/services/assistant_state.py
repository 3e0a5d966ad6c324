"""Per-user assistant conversation state and its in-memory cache."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional
import uuid

from ..models.assistant import (
    AssistantConversation,
    StoredAssistantState,
    UiMessage,
)
from .text_utils import collapse_whitespace

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant for a personal knowledge management app. "
    "Keep responses concise and practical."
)
DEFAULT_MODEL = "qwen3:8b"
DEFAULT_CONVERSATION_TITLE = "New chat"
CONVERSATION_TITLE_MAX_LENGTH = 60
STORAGE_KEY_PREFIX = "pkm:assistant:v1:"
GUEST_USER_ID = "guest"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _new_id() -> str:
    return str(uuid.uuid4())


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value.strip()) > 0


def assistant_storage_key(user_id: Optional[str] = None) -> str:
    return f"{STORAGE_KEY_PREFIX}{user_id or GUEST_USER_ID}"


def derive_conversation_title(text: str) -> str:
    candidate = collapse_whitespace(text or "")
    if not candidate:
        return DEFAULT_CONVERSATION_TITLE
    return candidate[:CONVERSATION_TITLE_MAX_LENGTH]


def create_empty_conversation() -> AssistantConversation:
    return AssistantConversation(
        id=_new_id(),
        title=DEFAULT_CONVERSATION_TITLE,
        pinned=False,
        updated_at=_now_iso(),
        messages=[],
    )


def default_assistant_state() -> StoredAssistantState:
    conversation = create_empty_conversation()
    return StoredAssistantState(
        active_conversation_id=conversation.id,
        conversations=[conversation],
        system_prompt=DEFAULT_SYSTEM_PROMPT,
        provider="ollama",
        model=DEFAULT_MODEL,
    )


def _read(raw: Dict[str, Any], snake: str, camel: str) -> Any:
    return raw[snake] if snake in raw else raw.get(camel)


def _normalize_messages(value: Any) -> List[UiMessage]:
    if not isinstance(value, list):
        return []
    messages: List[UiMessage] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        message_id = item.get("id")
        content = item.get("content")
        messages.append(
            UiMessage(
                id=message_id if isinstance(message_id, str) and message_id else _new_id(),
                role="assistant" if item.get("role") == "assistant" else "user",
                content=content if isinstance(content, str) else "",
            )
        )
    return messages


def _normalize_conversations(value: Any) -> List[AssistantConversation]:
    if not isinstance(value, list):
        return []
    conversations: List[AssistantConversation] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        conversation_id = item.get("id")
        title = item.get("title")
        updated_at = _read(item, "updated_at", "updatedAt")
        conversations.append(
            AssistantConversation(
                id=conversation_id
                if isinstance(conversation_id, str) and conversation_id
                else _new_id(),
                title=title if _non_empty_str(title) else DEFAULT_CONVERSATION_TITLE,
                pinned=bool(item.get("pinned")),
                updated_at=updated_at if isinstance(updated_at, str) else _now_iso(),
                messages=_normalize_messages(item.get("messages")),
            )
        )
    return conversations


def normalize_assistant_state(raw: Any) -> StoredAssistantState:
    """
    Coerce an untyped stored payload into a valid ``StoredAssistantState``.

    Accepts snake_case or camelCase keys. Missing or malformed pieces fall
    back to defaults; any payload that is not an object yields a fresh state.
    """
    if isinstance(raw, StoredAssistantState):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        if raw is not None:
            logger.warning("Discarding malformed assistant state", extra={"kind": type(raw).__name__})
        return default_assistant_state()

    conversations = _normalize_conversations(raw.get("conversations"))
    if not conversations:
        conversations = [create_empty_conversation()]

    candidate_active = _read(raw, "active_conversation_id", "activeConversationId")
    if not any(conversation.id == candidate_active for conversation in conversations):
        candidate_active = conversations[0].id
    conversations = sort_assistant_conversations(conversations)

    system_prompt = _read(raw, "system_prompt", "systemPrompt")
    model = raw.get("model")
    provider = "vertex" if raw.get("provider") == "vertex" else "ollama"

    return StoredAssistantState(
        active_conversation_id=candidate_active,
        conversations=conversations,
        system_prompt=system_prompt if _non_empty_str(system_prompt) else DEFAULT_SYSTEM_PROMPT,
        provider=provider,
        model=model if _non_empty_str(model) else DEFAULT_MODEL,
    )


def _timestamp_key(value: str) -> float:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def sort_assistant_conversations(
    conversations: List[AssistantConversation],
) -> List[AssistantConversation]:
    """Pinned conversations first, then most recently updated."""
    by_recency = sorted(conversations, key=lambda c: _timestamp_key(c.updated_at), reverse=True)
    return sorted(by_recency, key=lambda c: not c.pinned)


class AssistantStateCache:
    """In-memory assistant state keyed by storage key (one entry per user)."""

    def __init__(self) -> None:
        self._entries: Dict[str, StoredAssistantState] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, user_id: Optional[str] = None) -> Optional[StoredAssistantState]:
        return self._entries.get(assistant_storage_key(user_id))

    def load(self, user_id: Optional[str] = None, raw: Any = None) -> StoredAssistantState:
        """Return the cached state, normalizing ``raw`` into the cache on a miss."""
        key = assistant_storage_key(user_id)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        state = normalize_assistant_state(raw)
        self._entries[key] = state
        return state

    def put(self, user_id: Optional[str], state: Any) -> StoredAssistantState:
        normalized = normalize_assistant_state(state)
        self._entries[assistant_storage_key(user_id)] = normalized
        return normalized

    def invalidate(self, user_id: Optional[str] = None) -> bool:
        """Drop one user's entry (sign-out). Returns whether it existed."""
        return self._entries.pop(assistant_storage_key(user_id), None) is not None

    def clear(self) -> None:
        self._entries.clear()


__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "DEFAULT_MODEL",
    "DEFAULT_CONVERSATION_TITLE",
    "assistant_storage_key",
    "derive_conversation_title",
    "create_empty_conversation",
    "default_assistant_state",
    "normalize_assistant_state",
    "sort_assistant_conversations",
    "AssistantStateCache",
]
