"""Think-tag splitting and bracket citation handling for model output."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Dict, List, Sequence

from pydantic import BaseModel

from ..models.assistant import ResolvedCitation

THINK_OPEN_TAG = "<think>"
THINK_CLOSE_TAG = "</think>"

_CITATION_PATTERN = re.compile(r"\[([0-9]+)\]")


@dataclass(frozen=True)
class ThinkingReply:
    thinking: str
    reply: str


def parse_thinking_and_reply(content: str) -> ThinkingReply:
    """
    Split model output into its ``<think>`` segment and the visible reply.

    Without an open tag everything is reply. With an open tag but no close
    tag yet, everything after the open tag is thinking and the reply is empty.
    """
    open_index = content.find(THINK_OPEN_TAG)
    if open_index == -1:
        return ThinkingReply(thinking="", reply=content)

    thinking_start = open_index + len(THINK_OPEN_TAG)
    close_index = content.find(THINK_CLOSE_TAG, thinking_start)
    if close_index == -1:
        return ThinkingReply(thinking=content[thinking_start:].strip(), reply="")

    return ThinkingReply(
        thinking=content[thinking_start:close_index].strip(),
        reply=content[close_index + len(THINK_CLOSE_TAG):].lstrip(),
    )


def extract_cited_source_indexes(content: str) -> List[int]:
    """Positive ``[n]`` indexes, deduplicated in first-appearance order."""
    ordered: List[int] = []
    seen = set()
    for match in _CITATION_PATTERN.finditer(content):
        value = int(match.group(1))
        if value > 0 and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def _source_identity(source: Any) -> Any:
    if isinstance(source, BaseModel):
        return getattr(source, "id", id(source))
    if isinstance(source, dict):
        return source.get("id", id(source))
    return getattr(source, "id", id(source))


def resolve_cited_sources(content: str, sources: Sequence[Any]) -> List[ResolvedCitation]:
    """
    Map cited indexes onto ``sources`` (1-based) with dense renumbering.

    Out-of-range indexes are dropped and a source cited under several indexes
    is kept once, at its first citation.
    """
    resolved: List[ResolvedCitation] = []
    seen_ids = set()
    for original_index in extract_cited_source_indexes(content):
        if original_index > len(sources):
            continue
        source = sources[original_index - 1]
        identity = _source_identity(source)
        if identity in seen_ids:
            continue
        seen_ids.add(identity)
        resolved.append(
            ResolvedCitation(
                citation_index=len(resolved) + 1,
                original_citation_index=original_index,
                source=source,
            )
        )
    return resolved


def remap_citation_indexes(content: str, cited_sources: Sequence[ResolvedCitation]) -> str:
    """Rewrite ``[n]`` to dense indexes; unknown indexes are left as written."""
    if not cited_sources:
        return content

    index_map: Dict[int, int] = {
        entry.original_citation_index: entry.citation_index for entry in cited_sources
    }

    def _replace(match: re.Match[str]) -> str:
        remapped = index_map.get(int(match.group(1)))
        return f"[{remapped}]" if remapped else match.group(0)

    return _CITATION_PATTERN.sub(_replace, content)


__all__ = [
    "ThinkingReply",
    "parse_thinking_and_reply",
    "extract_cited_source_indexes",
    "resolve_cited_sources",
    "remap_citation_indexes",
]
