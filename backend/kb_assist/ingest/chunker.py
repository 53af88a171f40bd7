"""Chunking utilities."""

from __future__ import annotations

import re

from kb_assist.models.entities import Chunk

DEFAULT_MAX_CHUNK_SIZE = 1000

_SEGMENT_RE = re.compile(r"\n\s*\n", re.MULTILINE)
_SEPARATOR = "\n\n"


def chunk_text(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[str]:
    """Greedily pack blank-line separated paragraphs into bounded chunks.

    A paragraph is never split: one longer than ``max_chunk_size`` becomes
    its own oversized chunk. Paragraphs inside a chunk are joined with a
    blank line, and the separator counts towards the size limit.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")

    chunks: list[str] = []
    current = ""
    for paragraph in _iter_paragraphs(text):
        if not current:
            current = paragraph
        elif len(current) + len(_SEPARATOR) + len(paragraph) <= max_chunk_size:
            current = f"{current}{_SEPARATOR}{paragraph}"
        else:
            chunks.append(current)
            current = paragraph
    if current:
        chunks.append(current)
    return chunks


def build_chunks(text: str, source_url: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[Chunk]:
    """Attach the source URL to each chunk of ``text``."""
    return [Chunk(text=piece, source_url=source_url) for piece in chunk_text(text, max_chunk_size)]


def _iter_paragraphs(text: str):
    for segment in _SEGMENT_RE.split(text):
        segment = segment.strip()
        if segment:
            yield segment


__all__ = ["DEFAULT_MAX_CHUNK_SIZE", "chunk_text", "build_chunks"]
