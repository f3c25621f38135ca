"""
Vector Similarity
=================

numpy helpers shared by embedding providers and the in-memory backend.
"""

from typing import Sequence

import numpy as np

METRICS = ("cosine", "dot", "euclidean")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector is all zeros."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def calculate_similarity(
    v1: Sequence[float],
    v2: Sequence[float],
    metric: str = "cosine",
) -> float:
    """
    Similarity between two vectors.

    Args:
        v1: First vector
        v2: Second vector
        metric: "cosine", "dot" or "euclidean" (1 / (1 + distance))

    Raises:
        ValueError: Unknown metric or dimension mismatch
    """
    if len(v1) != len(v2):
        raise ValueError(f"Vector dimensions differ: {len(v1)} != {len(v2)}")

    metric = metric.lower()
    if metric == "cosine":
        return cosine_similarity(v1, v2)
    if metric == "dot":
        return float(np.dot(np.asarray(v1, dtype=float), np.asarray(v2, dtype=float)))
    if metric == "euclidean":
        distance = np.linalg.norm(np.asarray(v1, dtype=float) - np.asarray(v2, dtype=float))
        return float(1.0 / (1.0 + distance))
    raise ValueError(f"Unknown similarity metric: {metric!r} (expected one of {METRICS})")


def certainty(cosine: float) -> float:
    """Map cosine similarity [-1, 1] onto a [0, 1] certainty."""
    return max(0.0, min(1.0, (1.0 + cosine) / 2.0))
