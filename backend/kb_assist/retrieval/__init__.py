"""Retrieval orchestration components."""

from .retriever import Retriever
from .scoring import normalize_cosine, rank, token_overlap

__all__ = [
    "Retriever",
    "normalize_cosine",
    "rank",
    "token_overlap",
]
