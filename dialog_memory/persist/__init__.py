"""
Persistence and caching layer.

Provides:
- Stable hashing for content-addressable caching
- SQLite-backed KV store for snapshots and caches
- Embedding cache
"""

from .hashing import stable_hash
from .sqlite_store import KVStore
from .embedding_cache import CachingEmbedder

__all__ = [
    "stable_hash",
    "KVStore",
    "CachingEmbedder",
]
