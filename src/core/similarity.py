"""Cosine similarity between task embeddings."""

from collections.abc import Sequence

import numpy as np

from src.core.errors import DataError


def cosine_similarity(vec_a: Sequence[float] | None, vec_b: Sequence[float] | None) -> float:
    """Return the cosine similarity of two embedding vectors.

    Both vectors must come from the same embedding model. A zero-length
    vector has no direction, so its similarity to anything is 0.0.

    Raises:
        DataError: If either vector is missing, empty, or the dimensions differ
    """
    if vec_a is None or vec_b is None or len(vec_a) == 0 or len(vec_b) == 0:
        msg = "Cannot compare tasks without an embedding"
        raise DataError(msg)
    if len(vec_a) != len(vec_b):
        msg = f"Embedding dimensions differ: {len(vec_a)} != {len(vec_b)}"
        raise DataError(msg)

    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(a, b) / denominator)
