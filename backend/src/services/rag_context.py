"""Lexical retrieval over workspace documents.

Documents are ranked with a small bag-of-words scorer (exact token hits,
soft prefix hits, query coverage, phrase hits and a recency tie-break) and
then packed into a bounded context block the model can cite by number.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
import logging
import re
from typing import Iterable, List, Optional, Sequence

from ..models.assistant import RagDocument

logger = logging.getLogger(__name__)

DEFAULT_MAX_DOCUMENTS = 12
DEFAULT_MAX_CHARS = 7000

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
        "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
        "to", "was", "were", "will", "with", "this", "you", "your", "i",
        "we", "they",
    }
)

_SPLIT_PATTERN = re.compile(r"[^a-z0-9]+")

TITLE_MATCH_WEIGHT = 4.0
TITLE_MATCH_CAP = 4
BODY_MATCH_WEIGHT = 1.4
BODY_MATCH_CAP = 6
SOFT_PREFIX_SCORE = 0.8
SOFT_PREFIX_MIN_LENGTH = 4
COVERAGE_WEIGHT = 3.5
PHRASE_BONUS = 6.0
PHRASE_MIN_LENGTH = 8
BIGRAM_BONUS = 1.25
BIGRAM_MIN_LENGTH = 5
RECENCY_MAX = 0.75
RECENCY_DECAY_DAYS = 120.0


def tokenize(value: str) -> List[str]:
    """Lowercase, split on non-alphanumerics, drop short tokens and stop-words."""
    return [
        token
        for token in _SPLIT_PATTERN.split(value.lower())
        if len(token) > 1 and token not in STOP_WORDS
    ]


def _unique(tokens: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(tokens))


def _has_soft_prefix_match(token: str, candidates: Sequence[str]) -> bool:
    if len(token) < SOFT_PREFIX_MIN_LENGTH:
        return False
    return any(
        candidate.startswith(token) or token.startswith(candidate[:SOFT_PREFIX_MIN_LENGTH])
        for candidate in candidates
    )


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_score(updated_at: Optional[str], now: Optional[datetime] = None) -> float:
    if not updated_at:
        return 0.0
    timestamp = _parse_timestamp(updated_at)
    if timestamp is None:
        return 0.0
    current = now or datetime.now(timezone.utc)
    age_days = max((current - timestamp).total_seconds() / 86400.0, 0.0)
    return max(0.0, RECENCY_MAX - age_days / RECENCY_DECAY_DAYS)


def score_document(
    query_tokens: Sequence[str],
    document: RagDocument,
    now: Optional[datetime] = None,
) -> float:
    if not query_tokens:
        return 0.0

    haystack = f"{document.title.lower()} {document.content.lower()}"
    title_tokens = tokenize(document.title)
    body_tokens = tokenize(document.content)
    title_counts = Counter(title_tokens)
    body_counts = Counter(body_tokens)
    doc_unique_tokens = _unique([*title_tokens, *body_tokens])
    query_unique_tokens = _unique(query_tokens)

    score = 0.0
    matched = 0
    for token in query_unique_tokens:
        exact = (
            min(title_counts[token], TITLE_MATCH_CAP) * TITLE_MATCH_WEIGHT
            + min(body_counts[token], BODY_MATCH_CAP) * BODY_MATCH_WEIGHT
        )
        if exact > 0:
            matched += 1
            score += exact
        elif _has_soft_prefix_match(token, doc_unique_tokens):
            matched += 1
            score += SOFT_PREFIX_SCORE

    score += matched / max(len(query_unique_tokens), 1) * COVERAGE_WEIGHT

    normalized_query = " ".join(query_tokens).strip()
    if len(normalized_query) >= PHRASE_MIN_LENGTH and normalized_query in haystack:
        score += PHRASE_BONUS

    for left, right in zip(query_tokens, query_tokens[1:]):
        phrase = f"{left} {right}"
        if len(phrase) >= BIGRAM_MIN_LENGTH and phrase in haystack:
            score += BIGRAM_BONUS

    score += recency_score(document.updated_at, now)
    return score


def retrieve_relevant_documents(
    query: str,
    documents: Sequence[RagDocument],
    max_documents: int = DEFAULT_MAX_DOCUMENTS,
    max_chars: int = DEFAULT_MAX_CHARS,
    now: Optional[datetime] = None,
) -> List[RagDocument]:
    """
    Rank ``documents`` against ``query`` and pack the best into a budget.

    Returns an empty list when the query has no usable tokens. Packing keeps
    score order and stops at the first document that would overflow
    ``max_chars`` (title plus content length).
    """
    query_tokens = tokenize(query)
    if not query_tokens:
        return []

    scored = [(score_document(query_tokens, document, now), document) for document in documents]
    ranked = sorted(
        (item for item in scored if item[0] > 0),
        key=lambda item: item[0],
        reverse=True,
    )[: max_documents * 2]

    selected: List[RagDocument] = []
    total_chars = 0
    for _, document in ranked:
        if len(selected) >= max_documents:
            break
        size = len(document.title) + len(document.content)
        if total_chars + size > max_chars:
            break
        total_chars += size
        selected.append(document)

    logger.debug(
        "Retrieved documents",
        extra={"candidates": len(documents), "ranked": len(ranked), "selected": len(selected)},
    )
    return selected


def build_rag_context_block(documents: Sequence[RagDocument]) -> str:
    """Render documents as a 1-indexed list the model cites as ``[n]``."""
    if not documents:
        return ""

    lines: List[str] = []
    for index, document in enumerate(documents, start=1):
        updated = f" (updated {document.updated_at})" if document.updated_at else ""
        lines.append(f"[{index}] {document.source_type}: {document.title}{updated}")
        lines.append(document.content)
        lines.append("")
    return "\n".join(lines).strip()


__all__ = [
    "STOP_WORDS",
    "tokenize",
    "recency_score",
    "score_document",
    "retrieve_relevant_documents",
    "build_rag_context_block",
]
