"""Test fixtures for kb-assist."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import httpx
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from kb_assist.core.config import Settings  # noqa: E402
from kb_assist.db.sqlite import SQLiteDatabase  # noqa: E402
from kb_assist.db.store import DocumentStore  # noqa: E402
from kb_assist.ingest.embeddings import EmbeddingBackend, HashingEmbedder  # noqa: E402

TEST_DIM = 8


def _reset_singletons() -> None:
    from kb_assist.api import dependencies as deps
    from kb_assist.core import config

    config.get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._DB = None
    deps._STORE = None
    deps._HTTP_CLIENT = None
    deps._EVENTS = None
    deps._PIPELINE = None
    deps._CHAT_SERVICE = None


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("KBA_DB_PATH", str(tmp_path / "kb.db"))
    monkeypatch.setenv("KBA_EMBEDDING_BACKEND", "hashed")
    monkeypatch.setenv("KBA_EMBEDDING_DIM", str(TEST_DIM))
    monkeypatch.delenv("KBA_CONFIG", raising=False)
    monkeypatch.delenv("KBA_API_KEY", raising=False)
    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_path=tmp_path / "kb.db",
        embedding_backend="hashed",
        embedding_dim=TEST_DIM,
        storage_char_limit=4000,
        embedding_char_limit=8000,
    )


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    db = SQLiteDatabase(tmp_path / "store.db")
    document_store = DocumentStore(db, embedding_dim=TEST_DIM, timeout=5.0)
    document_store.initialize()
    yield document_store
    db.close()


class RecordingEmbedder(EmbeddingBackend):
    """Hashing embedder that remembers every text it was asked to embed."""

    def __init__(self, dim: int = TEST_DIM) -> None:
        self.model_name = "recording"
        self.dim = dim
        self.calls: list[str] = []
        self._inner = HashingEmbedder(dim=dim)

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return self._inner.encode(text)


@pytest.fixture
def embedder() -> RecordingEmbedder:
    return RecordingEmbedder()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an ``httpx.AsyncClient`` whose requests are answered by ``handler``."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture(scope="session")
def sample_html() -> str:
    return (
        "<html><head><title>Returns &amp; Refunds</title>"
        "<style>body { color: red; }</style>"
        "<script>var tracking = 'secret-tracker';</script></head>"
        "<body><h1>Refund policy</h1>"
        "<p>Our refund policy allows returns within 30 days.</p>"
        "<p>Shipping is free for orders over $50.</p>"
        "</body></html>"
    )


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."
