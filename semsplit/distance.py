# Version: v1.0
"""
semsplit.distance — Cosine distance between embedding vectors.
"""

from typing import Sequence

import numpy as np

from semsplit.exceptions import InvalidInput


def _as_vector(values: Sequence[float], label: str) -> np.ndarray:
    vec = np.asarray(values, dtype=np.float64)
    if vec.ndim != 1 or vec.size == 0:
        raise InvalidInput(f"{label} must be a non-empty 1-D vector")
    if not np.all(np.isfinite(vec)):
        raise InvalidInput(f"{label} contains non-finite values")
    return vec


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Return 1 - cos(a, b), in [0, 2].

    Args:
        a: First vector.
        b: Second vector, same length as *a*.

    Returns:
        Cosine distance; 0 for parallel vectors, 2 for opposite vectors.

    Raises:
        InvalidInput: If lengths differ, a vector is empty, or either vector
            has zero magnitude.
    """
    va = _as_vector(a, "a")
    vb = _as_vector(b, "b")
    if va.shape != vb.shape:
        raise InvalidInput(
            f"Vector length mismatch: {va.shape[0]} != {vb.shape[0]}"
        )
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        raise InvalidInput("Cannot compute cosine distance of a zero-magnitude vector")
    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push |similarity| slightly past 1.
    similarity = max(-1.0, min(1.0, similarity))
    return 1.0 - similarity


def batch_distances(vectors: Sequence[Sequence[float]]) -> list[float]:
    """Return the cosine distance of each consecutive pair.

    Args:
        vectors: Ordered embeddings, at least two, all the same dimension.

    Returns:
        List of len(vectors) - 1 distances.

    Raises:
        InvalidInput: On fewer than two vectors or a dimension mismatch.
    """
    if len(vectors) < 2:
        raise InvalidInput("At least two vectors are required")
    return [cosine_distance(vectors[i], vectors[i + 1]) for i in range(len(vectors) - 1)]
