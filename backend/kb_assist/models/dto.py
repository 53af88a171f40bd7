"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from kb_assist.models.entities import ConversationTurn, RankedCandidate, SourceDocument


class ErrorResponse(BaseModel):
    error: str


class IngestRequest(BaseModel):
    url: str = Field(..., description="Absolute http(s) URL of the page to ingest")


class IngestResponse(BaseModel):
    success: Literal[True] = True
    document_ids: list[str]


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str

    def to_turn(self) -> ConversationTurn:
        return ConversationTurn(role=self.role, content=self.content)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    history: list[ChatMessage] = Field(default_factory=list, description="Earlier turns, oldest first")


class SourceReference(BaseModel):
    document_id: str
    source_url: str | None = None
    title: str | None = None
    similarity: float

    @classmethod
    def from_candidate(cls, candidate: RankedCandidate) -> "SourceReference":
        return cls(
            document_id=candidate.document.id,
            source_url=candidate.document.source_url,
            title=candidate.document.title,
            similarity=candidate.similarity,
        )


class ChatResponse(BaseModel):
    success: Literal[True] = True
    response: str
    sources: list[SourceReference] = Field(default_factory=list)


class DocumentResponse(BaseModel):
    id: str
    content: str
    metadata: dict[str, Any]
    has_embedding: bool
    created_at: datetime

    @classmethod
    def from_document(cls, document: SourceDocument) -> "DocumentResponse":
        return cls(
            id=document.id,
            content=document.content,
            metadata=document.metadata,
            has_embedding=document.embedding is not None,
            created_at=document.created_at,
        )


class DeleteResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


__all__ = [
    "ErrorResponse",
    "IngestRequest",
    "IngestResponse",
    "ChatMessage",
    "ChatRequest",
    "SourceReference",
    "ChatResponse",
    "DocumentResponse",
    "DeleteResponse",
]
