"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.assistant import PROVIDER_DEFAULT_MODELS, AssistantProvider

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DATABASE_PATH = PROJECT_ROOT / "data" / "entities.db"
DEFAULT_AI_BASE_URL = "http://127.0.0.1:11435"
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    ai_base_url: str = Field(
        default=DEFAULT_AI_BASE_URL,
        description="Base URL of the AI backend serving /api/ai/chat[/stream]",
    )
    ai_request_timeout: float = Field(
        default=120.0, gt=0, description="Seconds before an AI request times out"
    )
    database_path: Path = Field(
        default=DEFAULT_DATABASE_PATH, description="SQLite file backing the local entity store"
    )
    assistant_provider: AssistantProvider = Field(
        default="ollama", description="Provider used when a request does not name one"
    )
    assistant_model: Optional[str] = Field(
        default=None, description="Model used when a request does not name one"
    )
    rag_max_documents: int = Field(default=12, ge=1, le=100)
    rag_max_chars: int = Field(default=7000, ge=1)
    cors_origins: tuple[str, ...] = Field(default=DEFAULT_CORS_ORIGINS)

    @field_validator("ai_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Optional[str]) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_AI_BASE_URL
        cleaned = str(value).strip().rstrip("/")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("AI_BASE_URL must start with http:// or https://")
        return cleaned

    @field_validator("database_path", mode="before")
    @classmethod
    def _normalize_database_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            return DEFAULT_DATABASE_PATH
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @property
    def default_model(self) -> str:
        """Configured model, or the provider's default when unset."""
        return self.assistant_model or PROVIDER_DEFAULT_MODELS[self.assistant_provider]


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _split_origins(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    config = AppConfig(
        ai_base_url=_read_env("AI_BASE_URL", DEFAULT_AI_BASE_URL),
        ai_request_timeout=_read_env("AI_REQUEST_TIMEOUT", "120"),
        database_path=_read_env("DATABASE_PATH", str(DEFAULT_DATABASE_PATH)),
        assistant_provider=_read_env("ASSISTANT_PROVIDER", "ollama"),
        assistant_model=_read_env("ASSISTANT_MODEL"),
        rag_max_documents=_read_env("RAG_MAX_DOCUMENTS", "12"),
        rag_max_chars=_read_env("RAG_MAX_CHARS", "7000"),
        cors_origins=_split_origins(_read_env("CORS_ORIGINS")),
    )
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "PROJECT_ROOT",
    "DEFAULT_DATABASE_PATH",
    "DEFAULT_AI_BASE_URL",
]
