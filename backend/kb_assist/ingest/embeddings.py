"""Embedding backends."""

from __future__ import annotations

import hashlib
import math
from typing import Any

import httpx

from kb_assist.core.config import Settings
from kb_assist.core.errors import EmbeddingServiceError
from kb_assist.core.logging import get_logger
from kb_assist.utils.text import tokenize

logger = get_logger(__name__)


class EmbeddingBackend:
    """Turns one text into a fixed-length vector.

    Implementations never truncate their input; callers clip text before
    embedding it.
    """

    model_name: str
    dim: int

    async def embed(self, text: str) -> list[float]:  # pragma: no cover - interface
        raise NotImplementedError


class EmbeddingClient(EmbeddingBackend):
    """Client for an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str,
        model: str,
        dim: int,
        api_key: str = "",
        timeout: float = 30.0,
    ) -> None:
        self.client = client
        self.url = url
        self.model_name = model
        self.dim = dim
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient) -> "EmbeddingClient":
        return cls(
            client,
            url=settings.embedding_url,
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            api_key=settings.api_key.get_secret_value(),
            timeout=settings.embed_timeout,
        )

    async def embed(self, text: str) -> list[float]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = await self.client.post(
                self.url,
                json={"model": self.model_name, "input": text},
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise EmbeddingServiceError(f"Embedding request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}") from exc

        if not response.is_success:
            raise EmbeddingServiceError(f"Embedding endpoint returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise EmbeddingServiceError("Embedding response is not valid JSON") from exc
        return self._extract_vector(body)

    def _extract_vector(self, body: Any) -> list[float]:
        try:
            vector = body["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise EmbeddingServiceError("Embedding response is missing data[0].embedding") from exc
        if not isinstance(vector, list) or not all(
            isinstance(value, (int, float)) and not isinstance(value, bool) for value in vector
        ):
            raise EmbeddingServiceError("Embedding response vector is not a list of numbers")
        if len(vector) != self.dim:
            raise EmbeddingServiceError(
                f"Embedding model {self.model_name} returned {len(vector)} dimensions, expected {self.dim}"
            )
        return [float(value) for value in vector]


class HashingEmbedder(EmbeddingBackend):
    """Offline feature-hashing embedder with deterministic, normalized output."""

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        self.model_name = model_name
        self.dim = dim

    async def embed(self, text: str) -> list[float]:
        return self.encode(text)

    def encode(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        for token in tokenize(text):
            vector[_hash_token(token, self.dim)] += 1.0
        _normalize(vector)
        return vector


def build_embedder(settings: Settings, client: httpx.AsyncClient) -> EmbeddingBackend:
    """Pick the embedding backend named by ``settings.embedding_backend``."""
    if settings.embedding_backend == "hashed":
        logger.info("Using offline hashed embeddings (dim=%s)", settings.embedding_dim)
        return HashingEmbedder(model_name="hashed", dim=settings.embedding_dim)
    return EmbeddingClient.from_settings(settings, client)


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = ["EmbeddingBackend", "EmbeddingClient", "HashingEmbedder", "build_embedder"]
