"""FastAPI application main entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from .middleware import register_error_handlers
from .routes import assistant, relations
from ..services.assistant_state import AssistantStateCache
from ..services.config import get_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler owning the per-process assistant state cache."""
    logger.info("Starting PKM core API")
    yield
    app.state.assistant_state_cache.clear()
    logger.info("PKM core API stopped; assistant state cache cleared")


def create_app() -> FastAPI:
    config = get_config()

    app = FastAPI(
        title="PKM Core API",
        description="Relation graph sync and retrieval-augmented assistant for a personal knowledge workspace",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.assistant_state_cache = AssistantStateCache()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(relations.router)
    app.include_router(assistant.router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


__all__ = ["app", "create_app"]
