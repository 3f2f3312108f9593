"""Embedding backends for memory recall and dedup."""

from .encoders import BaseEmbedder, HashingEmbedder, SentenceTransformerEmbedder

__all__ = [
    "BaseEmbedder",
    "HashingEmbedder",
    "SentenceTransformerEmbedder",
]
