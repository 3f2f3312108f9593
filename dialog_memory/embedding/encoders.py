"""
Embedding backends.

Every backend implements ``embed`` for one text and ``embed_batch`` for many;
``embed_batch`` returns one vector per input, in input order.
"""

import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import numpy as np


logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\w\s]")


class BaseEmbedder(ABC):
    """Abstract base class for text embedders."""

    model_name: str = "unknown"

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts, preserving order."""
        pass

    def embed(self, text: str) -> List[float]:
        """Embed a single text."""
        vectors = self.embed_batch([text])
        return vectors[0] if vectors else []


class HashingEmbedder(BaseEmbedder):
    """
    Deterministic bag-of-words embedder for tests and offline runs.

    Each token is hashed into one of ``dim`` buckets with a hash-derived sign,
    then the vector is L2-normalized. Identical texts embed identically and
    texts sharing words score a positive similarity; no model download needed.
    """

    def __init__(self, dim: int = 384):
        self.dim = dim
        self.model_name = f"hashing-{dim}"

    def _tokenize(self, text: str) -> List[str]:
        text = _TOKEN_RE.sub(" ", text.lower())
        return text.split()

    def _embed_one(self, text: str) -> List[float]:
        vector = np.zeros(self.dim, dtype=np.float64)

        for token in self._tokenize(text):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dim
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm

        return vector.tolist()

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self._embed_one(text) for text in texts]


class SentenceTransformerEmbedder(BaseEmbedder):
    """
    Embedder backed by a sentence-transformers model.

    The model is loaded on first use so that constructing the pipeline does
    not download weights.
    """

    def __init__(
        self,
        model_name: str = "BAAI/bge-large-en-v1.5",
        normalize: bool = True,
        batch_size: int = 32,
        model: Optional[Any] = None,
    ):
        """
        Args:
            model_name: Hugging Face model identifier
            normalize: L2-normalize embeddings
            batch_size: Encode batch size
            model: Preloaded SentenceTransformer (or compatible) instance
        """
        self.model_name = model_name
        self.normalize = normalize
        self.batch_size = batch_size
        self._model = model

    @property
    def model(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model %s", self.model_name)
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        vectors = self.model.encode(
            texts,
            batch_size=self.batch_size,
            show_progress_bar=False,
            normalize_embeddings=self.normalize,
        )
        return np.asarray(vectors, dtype=np.float32).tolist()
