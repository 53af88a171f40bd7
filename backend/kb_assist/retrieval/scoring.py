"""Relevance scores in the closed interval [0, 1]."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from kb_assist.models.entities import RankedCandidate
from kb_assist.utils.text import tokenize


def token_overlap(query: str, content: str) -> float:
    """Fraction of distinct query tokens that occur in ``content``.

    Query tokens are deduplicated, content tokens are only tested for
    membership. A query without tokens scores 0.
    """
    query_tokens = set(tokenize(query))
    if not query_tokens:
        return 0.0
    content_tokens = set(tokenize(content))
    return len(query_tokens & content_tokens) / len(query_tokens)


def normalize_cosine(cosine: float) -> float:
    """Map a cosine similarity from [-1, 1] onto [0, 1]."""
    return clamp((cosine + 1.0) / 2.0)


def clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def rank(candidates: Iterable[RankedCandidate]) -> list[RankedCandidate]:
    """Order by similarity descending, then by ``created_at`` descending."""
    return sorted(candidates, key=_sort_key)


def _sort_key(candidate: RankedCandidate) -> tuple[float, float]:
    return (-candidate.similarity, -_epoch(candidate.document.created_at))


def _epoch(value: datetime) -> float:
    return value.timestamp()


__all__ = ["token_overlap", "normalize_cosine", "clamp", "rank"]
