"""Internal dataclasses representing stored and transient entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True, frozen=True)
class SourceDocument:
    """A stored knowledge-base record. Never updated in place."""

    id: str
    content: str
    embedding: list[float] | None
    metadata: dict[str, Any]
    created_at: datetime

    @property
    def source_url(self) -> str | None:
        return self.metadata.get("source_url")

    @property
    def title(self) -> str | None:
        return self.metadata.get("title")


@dataclass(slots=True)
class Chunk:
    text: str
    source_url: str


@dataclass(slots=True)
class NewDocument:
    """Insert payload for ``DocumentStore.insert_many``."""

    content: str
    embedding: list[float] | None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class RankedCandidate:
    document: SourceDocument
    similarity: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.similarity <= 1.0:
            raise ValueError(f"similarity must be within [0, 1], got {self.similarity}")


@dataclass(slots=True)
class ConversationTurn:
    role: str
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


__all__ = ["SourceDocument", "Chunk", "NewDocument", "RankedCandidate", "ConversationTurn"]
