"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

import httpx

from kb_assist.chat.service import ChatService
from kb_assist.chat.synthesizer import AnswerSynthesizer
from kb_assist.core.config import Settings, get_settings
from kb_assist.core.events import EventPublisher
from kb_assist.db.sqlite import SQLiteDatabase
from kb_assist.db.store import DocumentStore
from kb_assist.ingest.embeddings import EmbeddingBackend, build_embedder
from kb_assist.ingest.fetcher import PageFetcher
from kb_assist.ingest.pipeline import IngestPipeline
from kb_assist.retrieval import Retriever

_DB: SQLiteDatabase | None = None
_STORE: DocumentStore | None = None
_HTTP_CLIENT: httpx.AsyncClient | None = None
_EVENTS: EventPublisher | None = None
_PIPELINE: IngestPipeline | None = None
_CHAT_SERVICE: ChatService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        _DB = SQLiteDatabase(get_app_settings().db_path)
    return _DB


def get_document_store() -> DocumentStore:
    global _STORE
    if _STORE is None:
        settings = get_app_settings()
        store = DocumentStore(get_database(), embedding_dim=settings.embedding_dim, timeout=settings.store_timeout)
        store.initialize()
        _STORE = store
    return _STORE


def get_http_client() -> httpx.AsyncClient:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is None:
        _HTTP_CLIENT = httpx.AsyncClient()
    return _HTTP_CLIENT


def get_event_publisher() -> EventPublisher:
    global _EVENTS
    if _EVENTS is None:
        _EVENTS = EventPublisher()
    return _EVENTS


def get_embedder() -> EmbeddingBackend:
    return build_embedder(get_app_settings(), get_http_client())


def get_ingest_pipeline() -> IngestPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        settings = get_app_settings()
        _PIPELINE = IngestPipeline(
            store=get_document_store(),
            embedder=get_embedder(),
            fetcher=PageFetcher(get_http_client(), timeout=settings.fetch_timeout, user_agent=settings.user_agent),
            settings=settings,
            events=get_event_publisher(),
        )
    return _PIPELINE


def get_chat_service() -> ChatService:
    global _CHAT_SERVICE
    if _CHAT_SERVICE is None:
        settings = get_app_settings()
        retriever = Retriever(
            store=get_document_store(),
            embedder=get_embedder() if settings.retrieval_mode == "vector" else None,
            mode=settings.retrieval_mode,
            min_similarity=settings.min_similarity,
        )
        _CHAT_SERVICE = ChatService(
            retriever=retriever,
            synthesizer=AnswerSynthesizer.from_settings(settings, get_http_client()),
            top_k=settings.top_k,
            max_history_turns=settings.max_history_turns,
        )
    return _CHAT_SERVICE


async def close_resources() -> None:
    """Release the shared HTTP client and database connection."""
    global _DB, _STORE, _HTTP_CLIENT, _PIPELINE, _CHAT_SERVICE
    if _HTTP_CLIENT is not None:
        await _HTTP_CLIENT.aclose()
    if _DB is not None:
        _DB.close()
    _DB = None
    _STORE = None
    _HTTP_CLIENT = None
    _PIPELINE = None
    _CHAT_SERVICE = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_document_store",
    "get_http_client",
    "get_event_publisher",
    "get_embedder",
    "get_ingest_pipeline",
    "get_chat_service",
    "close_resources",
]
