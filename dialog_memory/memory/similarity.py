"""Cosine similarity shared by recall, extraction and merge."""

from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Empty vectors, mismatched lengths and zero norms all score 0.0, meaning
    "unrelated" rather than an error.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1.0, 1.0]
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push identical vectors slightly past 1.0
    return max(-1.0, min(1.0, similarity))
