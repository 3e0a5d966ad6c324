"""Small text helpers used when flattening entities for retrieval."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def collapse_whitespace(value: str) -> str:
    return _WHITESPACE_PATTERN.sub(" ", value).strip()


def to_plain_text(value: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    return collapse_whitespace(_TAG_PATTERN.sub(" ", value or ""))


def truncate_text(value: str, max_length: int = 600) -> str:
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}…"


def person_display_name(person: Any) -> str:
    if isinstance(person, BaseModel):
        first = getattr(person, "first_name", "") or ""
        last = getattr(person, "last_name", "") or ""
    else:
        first = person.get("first_name") or person.get("firstName") or ""
        last = person.get("last_name") or person.get("lastName") or ""
    return collapse_whitespace(f"{first} {last}")


__all__ = ["collapse_whitespace", "to_plain_text", "truncate_text", "person_display_name"]
