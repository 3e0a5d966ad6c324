"""HTTP API route handlers."""

from . import assistant, relations

__all__ = ["assistant", "relations"]
