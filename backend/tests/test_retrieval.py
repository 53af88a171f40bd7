"""Retrieval tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from kb_assist.core.metrics import REGISTRY
from kb_assist.db.store import DocumentStore
from kb_assist.models.entities import RankedCandidate, SourceDocument
from kb_assist.retrieval import Retriever, normalize_cosine, rank, token_overlap


def _document(doc_id: str, created_at: datetime, content: str = "text") -> SourceDocument:
    return SourceDocument(id=doc_id, content=content, embedding=None, metadata={}, created_at=created_at)


def test_token_overlap_scores() -> None:
    content = "Our refund policy allows returns within 30 days."
    assert token_overlap("refund policy", content) == 1.0
    assert token_overlap("Refund POLICY?", content) == 1.0
    assert token_overlap("refund shipping", content) == 0.5
    assert token_overlap("refund refund shipping", content) == 0.5
    assert token_overlap("", content) == 0.0
    assert token_overlap("?!", content) == 0.0


def test_normalize_cosine_bounds() -> None:
    assert normalize_cosine(1.0) == 1.0
    assert normalize_cosine(-1.0) == 0.0
    assert normalize_cosine(0.0) == 0.5
    assert normalize_cosine(1.0000001) == 1.0


def test_rank_breaks_ties_by_recency() -> None:
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    older = RankedCandidate(_document("old", now - timedelta(days=1)), 0.5)
    newer = RankedCandidate(_document("new", now), 0.5)
    best = RankedCandidate(_document("best", now - timedelta(days=7)), 0.9)

    assert [c.document.id for c in rank([older, best, newer])] == ["best", "new", "old"]


def test_candidate_similarity_must_be_in_unit_interval() -> None:
    with pytest.raises(ValueError):
        RankedCandidate(_document("x", datetime.now(tz=timezone.utc)), 1.5)


@pytest.mark.asyncio
async def test_lexical_retrieval_ranks_full_overlap_first(store: DocumentStore) -> None:
    refunds = await store.insert("Our refund policy allows returns within 30 days.", None)
    await store.insert("The policy on shipping is simple.", None)
    await store.insert("Contact us by email.", None)

    results = await Retriever(store).retrieve("refund policy", k=5)

    assert results[0].document.id == refunds.id
    assert results[0].similarity == 1.0
    assert [r.similarity for r in results] == [1.0, 0.5]


@pytest.mark.asyncio
async def test_lexical_retrieval_prefers_newer_on_ties(store: DocumentStore) -> None:
    older = await store.insert("refund policy v1", None)
    newer = await store.insert("refund policy v2", None)

    results = await Retriever(store).retrieve("refund policy", k=5)
    assert [r.document.id for r in results] == [newer.id, older.id]


@pytest.mark.asyncio
async def test_empty_query_scores_zero(store: DocumentStore) -> None:
    await store.insert("anything at all", None)
    results = await Retriever(store).retrieve("", k=5)
    assert [r.similarity for r in results] == [0.0]


@pytest.mark.asyncio
async def test_k_bounds(store: DocumentStore) -> None:
    for idx in range(4):
        await store.insert(f"refund note {idx}", None)
    retriever = Retriever(store)
    assert await retriever.retrieve("refund", k=0) == []
    assert len(await retriever.retrieve("refund", k=2)) == 2
    assert await Retriever(store).retrieve("nothing matches", k=3) == []


@pytest.mark.asyncio
async def test_min_similarity_filters_weak_matches(store: DocumentStore) -> None:
    await store.insert("refund policy", None)
    await store.insert("refund only", None)
    results = await Retriever(store, min_similarity=0.75).retrieve("refund policy", k=5)
    assert [r.document.content for r in results] == ["refund policy"]


@pytest.mark.asyncio
async def test_vector_retrieval(store: DocumentStore, embedder) -> None:
    target_text = "refund policy returns"
    target = await store.insert(target_text, embedder._inner.encode(target_text))
    await store.insert("shipping costs abroad", embedder._inner.encode("shipping costs abroad"))

    retriever = Retriever(store, embedder=embedder, mode="vector")
    results = await retriever.retrieve(target_text, k=1)

    assert embedder.calls == [target_text]
    assert [r.document.id for r in results] == [target.id]
    assert results[0].similarity == pytest.approx(1.0, abs=1e-6)
    assert all(0.0 <= r.similarity <= 1.0 for r in results)


def test_vector_mode_requires_embedder(store: DocumentStore) -> None:
    with pytest.raises(ValueError):
        Retriever(store, mode="vector")


@pytest.mark.asyncio
async def test_lexical_retrieval_matches_non_ascii_case(store: DocumentStore) -> None:
    summer = await store.insert("ÉTÉ ÜBER", None)
    results = await Retriever(store).retrieve("été über", k=5)
    assert [r.document.id for r in results] == [summer.id]
    assert results[0].similarity == 1.0


@pytest.mark.asyncio
async def test_vector_retrieval_without_embedder_raises(store: DocumentStore, embedder) -> None:
    retriever = Retriever(store, embedder=embedder, mode="vector")
    retriever.embedder = None
    with pytest.raises(ValueError):
        await retriever.retrieve("refund", k=1)


@pytest.mark.asyncio
async def test_retrieval_latency_has_its_own_histogram(store: DocumentStore) -> None:
    labels = {"mode": "lexical"}
    before = REGISTRY.get_sample_value("kba_retrieval_latency_seconds_count", labels) or 0.0

    await Retriever(store).retrieve("refund", k=1)

    assert REGISTRY.get_sample_value("kba_retrieval_latency_seconds_count", labels) == before + 1
    assert (
        REGISTRY.get_sample_value("kba_request_latency_seconds_count", {"endpoint": "retrieve", "method": "lexical"})
        is None
    )
