"""ID helpers."""

from __future__ import annotations

import uuid

DOCUMENT_PREFIX = "doc"


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 hex string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def new_document_id() -> str:
    return new_id(DOCUMENT_PREFIX)
