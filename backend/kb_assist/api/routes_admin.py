"""Administrative routes for the knowledge base."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from kb_assist.api.dependencies import get_document_store, get_event_publisher
from kb_assist.core.events import DOCUMENT_DELETED, DocumentEvent, EventPublisher
from kb_assist.core.logging import get_logger
from kb_assist.core.metrics import DOCUMENT_COUNT, metrics_response
from kb_assist.db.store import DocumentStore
from kb_assist.models.dto import DeleteResponse, DocumentResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("/documents", response_model=list[DocumentResponse], summary="List stored documents, newest first")
async def list_documents(store: DocumentStore = Depends(get_document_store)) -> list[DocumentResponse]:
    documents = await store.list_all()
    return [DocumentResponse.from_document(document) for document in documents]


@router.get("/documents/{document_id}", response_model=DocumentResponse, summary="Fetch one document")
async def get_document(document_id: str, store: DocumentStore = Depends(get_document_store)) -> DocumentResponse:
    document = await store.get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentResponse.from_document(document)


@router.delete("/documents/{document_id}", response_model=DeleteResponse, summary="Delete a document")
async def delete_document(
    document_id: str,
    store: DocumentStore = Depends(get_document_store),
    events: EventPublisher = Depends(get_event_publisher),
) -> DeleteResponse:
    removed = await store.delete(document_id)
    if not removed:
        return DeleteResponse(status="noop", deleted=0)
    DOCUMENT_COUNT.dec()
    logger.info("Deleted document %s", document_id, extra={"ctx_document_id": document_id})
    await events.publish(DocumentEvent(type=DOCUMENT_DELETED, document_ids=[document_id]))
    return DeleteResponse(status="ok", deleted=1)


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
