"""
Shared fixtures for unit tests.
"""
import pytest
from typing import Dict, List, Optional

from dialog_memory.embedding.encoders import BaseEmbedder, HashingEmbedder
from dialog_memory.persist.sqlite_store import KVStore


class FakeEmbedder(BaseEmbedder):
    """Embedder returning fixed vectors per text and recording every call."""

    model_name = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = vectors or {}
        self.default = default or []
        self.calls: List[List[str]] = []

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [list(self.vectors.get(text, self.default)) for text in texts]


@pytest.fixture
def kv(tmp_path):
    """Create a temporary KVStore instance."""
    db_path = tmp_path / "memory.db"
    store = KVStore(db_path)
    yield store
    store.close()


@pytest.fixture
def embedder():
    """Deterministic hashing embedder."""
    return HashingEmbedder(dim=64)


@pytest.fixture
def fake_embedder():
    """Factory for FakeEmbedder instances."""
    def _make(vectors=None, default=None):
        return FakeEmbedder(vectors, default)
    return _make
