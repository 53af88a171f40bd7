"""Ingest pipeline orchestration."""

from __future__ import annotations

import time
from typing import Any

from kb_assist.core.config import Settings
from kb_assist.core.errors import EmptyContentError, KnowledgeBaseError
from kb_assist.core.events import DOCUMENT_INGESTED, DocumentEvent, EventPublisher
from kb_assist.core.logging import get_logger
from kb_assist.core.metrics import DOCUMENT_COUNT, INGEST_DURATION, PIPELINE_FAILURES
from kb_assist.db.store import DocumentStore
from kb_assist.ingest.chunker import build_chunks
from kb_assist.ingest.embeddings import EmbeddingBackend
from kb_assist.ingest.fetcher import PageFetcher
from kb_assist.ingest.sanitizer import clip, extract_title, sanitize_html
from kb_assist.models.entities import NewDocument, SourceDocument
from kb_assist.utils.time import utc_now

logger = get_logger(__name__)


class IngestPipeline:
    """Fetch, sanitize, embed and persist a single web page.

    Nothing touches the store before the final insert, so a failure at any
    earlier step leaves no trace. URLs are not deduplicated: ingesting the
    same page twice, including concurrently, stores two records.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder: EmbeddingBackend,
        fetcher: PageFetcher,
        settings: Settings,
        events: EventPublisher | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.fetcher = fetcher
        self.settings = settings
        self.events = events or EventPublisher()

    async def run(self, url: str) -> list[SourceDocument]:
        """Ingest ``url`` using the configured ``ingest_mode``."""
        if self.settings.ingest_mode == "chunked":
            return await self.ingest_chunked(url)
        return [await self.ingest(url)]

    async def ingest(self, url: str) -> SourceDocument:
        """Store the whole sanitized page as one document."""
        start_time = time.perf_counter()
        try:
            page = await self.fetcher.fetch(url)
            text = sanitize_html(page.html, max_chars=self.settings.storage_char_limit)
            if not text:
                raise EmptyContentError(f"No text extracted from {url}")
            embedding = await self.embedder.embed(clip(text, self.settings.embedding_char_limit))
            document = await self.store.insert(text, embedding, self._metadata(url, page.html))
        except KnowledgeBaseError as exc:
            self._record_failure(url, exc)
            raise

        INGEST_DURATION.labels(mode="single").observe(time.perf_counter() - start_time)
        logger.info(
            "Ingested %s as %s (%s chars)",
            url,
            document.id,
            len(text),
            extra={"ctx_url": url, "ctx_document_id": document.id},
        )
        await self._after_write([document], url)
        return document

    async def ingest_chunked(self, url: str) -> list[SourceDocument]:
        """Store one document per paragraph-aligned chunk of the page.

        Every chunk is embedded before anything is written, and the chunks
        are inserted in a single transaction.
        """
        start_time = time.perf_counter()
        try:
            page = await self.fetcher.fetch(url)
            text = sanitize_html(
                page.html,
                max_chars=self.settings.storage_char_limit,
                keep_paragraphs=True,
            )
            chunks = build_chunks(text, url, max_chunk_size=self.settings.chunk_size)
            if not chunks:
                raise EmptyContentError(f"No text extracted from {url}")

            metadata = self._metadata(url, page.html)
            records: list[NewDocument] = []
            for index, chunk in enumerate(chunks):
                embedding = await self.embedder.embed(clip(chunk.text, self.settings.embedding_char_limit))
                records.append(
                    NewDocument(
                        content=chunk.text,
                        embedding=embedding,
                        metadata={**metadata, "chunk_index": index, "chunk_count": len(chunks)},
                    )
                )
            documents = await self.store.insert_many(records)
        except KnowledgeBaseError as exc:
            self._record_failure(url, exc)
            raise

        INGEST_DURATION.labels(mode="chunked").observe(time.perf_counter() - start_time)
        logger.info(
            "Ingested %s as %s chunks",
            url,
            len(documents),
            extra={"ctx_url": url, "ctx_document_ids": [doc.id for doc in documents]},
        )
        await self._after_write(documents, url)
        return documents

    # Internal helpers -------------------------------------------------

    def _metadata(self, url: str, html: str) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "source_url": url,
            "processed_at": utc_now().isoformat(),
        }
        title = extract_title(html)
        if title:
            metadata["title"] = title
        return metadata

    async def _after_write(self, documents: list[SourceDocument], url: str) -> None:
        DOCUMENT_COUNT.inc(len(documents))
        await self.events.publish(
            DocumentEvent(
                type=DOCUMENT_INGESTED,
                document_ids=[document.id for document in documents],
                source_url=url,
            )
        )

    def _record_failure(self, url: str, exc: KnowledgeBaseError) -> None:
        PIPELINE_FAILURES.labels(stage="ingest", kind=exc.kind).inc()
        logger.warning(
            "Ingest of %s failed (%s): %s",
            url,
            exc.kind,
            exc,
            exc_info=exc,
            extra={"ctx_url": url, "ctx_error_kind": exc.kind},
        )


__all__ = ["IngestPipeline"]
