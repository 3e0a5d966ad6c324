"""Caller identity dependency helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Header

from ...services.assistant_state import GUEST_USER_ID


@dataclass
class AuthContext:
    """Identity of the caller plus an optional bearer token to forward."""

    user_id: str
    token: Optional[str] = None


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_auth_context(
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
) -> AuthContext:
    """
    Resolve the caller from request headers.

    ``X-User-Id`` names the user (``guest`` when absent). A ``Bearer`` token,
    when present, is passed through to the AI backend without validation.
    """
    user_id = (x_user_id or "").strip() or GUEST_USER_ID
    return AuthContext(user_id=user_id, token=_bearer_token(authorization))


__all__ = ["AuthContext", "get_auth_context"]
