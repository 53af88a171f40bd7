"""Candidate search and ranking for chat turns."""

from __future__ import annotations

import time
from typing import Literal

from kb_assist.core.logging import get_logger
from kb_assist.core.metrics import RETRIEVAL_LATENCY
from kb_assist.db.store import DocumentStore
from kb_assist.ingest.embeddings import EmbeddingBackend
from kb_assist.models.entities import RankedCandidate
from kb_assist.retrieval.scoring import normalize_cosine, rank, token_overlap

logger = get_logger(__name__)

RetrievalMode = Literal["lexical", "vector"]


class Retriever:
    """Find the documents most relevant to a query.

    ``lexical`` mode asks the store for keyword matches and scores them by
    token overlap. ``vector`` mode embeds the query and scores the store's
    nearest neighbours by normalized cosine similarity.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingBackend | None = None,
        mode: RetrievalMode = "lexical",
        min_similarity: float = 0.0,
    ) -> None:
        if mode == "vector" and embedder is None:
            raise ValueError("vector retrieval needs an embedding backend")
        self.store = store
        self.embedder = embedder
        self.mode = mode
        self.min_similarity = min_similarity

    async def retrieve(self, query: str, k: int = 5) -> list[RankedCandidate]:
        if k <= 0:
            return []
        start_time = time.perf_counter()
        if self.mode == "vector":
            candidates = await self._vector_candidates(query, k)
        else:
            candidates = await self._lexical_candidates(query, k)

        ranked = [candidate for candidate in rank(candidates) if candidate.similarity >= self.min_similarity]
        RETRIEVAL_LATENCY.labels(mode=self.mode).observe(time.perf_counter() - start_time)
        logger.debug(
            "Retrieved %s candidates for query",
            len(ranked),
            extra={"ctx_mode": self.mode, "ctx_k": k},
        )
        return ranked[:k]

    async def _lexical_candidates(self, query: str, k: int) -> list[RankedCandidate]:
        documents = await self.store.lexical_search(query, limit=k)
        return [
            RankedCandidate(document=document, similarity=token_overlap(query, document.content))
            for document in documents
        ]

    async def _vector_candidates(self, query: str, k: int) -> list[RankedCandidate]:
        if self.embedder is None:
            raise ValueError("vector retrieval needs an embedding backend")
        vector = await self.embedder.embed(query)
        hits = await self.store.vector_search(vector, limit=k)
        return [
            RankedCandidate(document=document, similarity=normalize_cosine(cosine))
            for document, cosine in hits
        ]


__all__ = ["Retriever", "RetrievalMode"]
