"""
Embedding cache - wrap an embedder with a SQLite-backed cache.

Caches embeddings by content hash to avoid recomputing them on every turn
(the same query or fact text is often embedded more than once).
"""

import numpy as np
from typing import List

from dialog_memory.embedding.encoders import BaseEmbedder
from .hashing import stable_hash
from .sqlite_store import KVStore


class CachingEmbedder(BaseEmbedder):
    """
    Wrapper for an embedder that caches vectors.

    Key = blake2b(text + model_name)
    Value = float32 vector bytes

    Usage:
        >>> kv = KVStore(Path("data/memory/memory.db"))
        >>> embedder = CachingEmbedder(SentenceTransformerEmbedder(), kv)
        >>> vectors = embedder.embed_batch(["hello", "world"])
        >>> # Second call hits cache
        >>> vectors2 = embedder.embed_batch(["hello", "world"])
    """

    def __init__(self, inner: BaseEmbedder, kv: KVStore):
        """
        Initialize caching embedder.

        Args:
            inner: Embedder used on cache misses
            kv: KVStore instance
        """
        self.inner = inner
        self.kv = kv
        self.model_name = inner.model_name

        # Track cache hits/misses
        self.hits = 0
        self.misses = 0

    def _cache_key(self, text: str) -> str:
        """Generate cache key for text."""
        return stable_hash({"text": text, "model": self.model_name})

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts with caching.

        Misses are embedded together in one call to the inner embedder.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order
        """
        if not texts:
            return []

        result: List[List[float]] = [[] for _ in texts]
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cached_bytes = self.kv.get("embeddings", self._cache_key(text))

            if cached_bytes is not None:
                self.hits += 1
                result[i] = np.frombuffer(cached_bytes, dtype=np.float32).tolist()
            else:
                self.misses += 1
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            new_vectors = self.inner.embed_batch(uncached_texts)

            for text, idx, vector in zip(uncached_texts, uncached_indices, new_vectors):
                vector_bytes = np.asarray(vector, dtype=np.float32).tobytes()
                self.kv.set("embeddings", self._cache_key(text), vector_bytes)
                result[idx] = np.frombuffer(vector_bytes, dtype=np.float32).tolist()

        return result

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
        }
