# Version: v1.0
"""
semsplit.threshold — Statistical candidate selection for pass 1.

The adaptive threshold is mean + 1.5 standard deviations of the consecutive
embedding distances, clamped to a configured band. When too many distances
clear it, the threshold is raised to the candidate_limit-th largest distance.
"""

from typing import Sequence

import numpy as np

from semsplit.exceptions import InputError, InvalidInput
from semsplit.models import BoundaryCandidate, TextSpan

STD_MULTIPLIER = 1.5


def adaptive_threshold(
    distances: Sequence[float],
    min_threshold: float = 0.3,
    max_threshold: float = 0.8,
    candidate_limit: int = 500,
) -> float:
    """Compute the pass-1 candidate threshold.

    Args:
        distances: Consecutive embedding distances (non-empty).
        min_threshold: Lower clamp, in [0, 1].
        max_threshold: Upper clamp, in [0, 1], >= min_threshold.
        candidate_limit: Maximum number of candidates to admit.

    Returns:
        Threshold t with min_threshold <= t <= max_threshold.

    Raises:
        InputError: On empty input or invalid bounds.
    """
    if len(distances) == 0:
        raise InvalidInput("Cannot compute a threshold from no distances")
    if not (0.0 <= min_threshold <= 1.0) or not (0.0 <= max_threshold <= 1.0):
        raise InputError(
            f"Threshold bounds must be within [0, 1], got "
            f"min={min_threshold}, max={max_threshold}"
        )
    if min_threshold > max_threshold:
        raise InputError(
            f"min_threshold ({min_threshold}) must be <= max_threshold ({max_threshold})"
        )
    if candidate_limit <= 0:
        raise InputError(f"candidate_limit must be positive, got {candidate_limit}")

    values = np.asarray(distances, dtype=np.float64)
    mean = float(values.mean())
    std = float(values.std())
    threshold = min(max(mean + STD_MULTIPLIER * std, min_threshold), max_threshold)

    above = int(np.count_nonzero(values >= threshold))
    if above > candidate_limit:
        ranked = np.sort(values)[::-1]
        threshold = min(float(ranked[candidate_limit - 1]), max_threshold)

    return threshold


def select_candidates(
    spans: Sequence[TextSpan],
    distances: Sequence[float],
    threshold: float,
) -> list[BoundaryCandidate]:
    """Return candidate boundaries whose distance meets the threshold."""
    if len(distances) != len(spans) - 1:
        raise InvalidInput(
            f"Expected {len(spans) - 1} distances for {len(spans)} spans, "
            f"got {len(distances)}"
        )
    return [
        BoundaryCandidate(
            index=i,
            left_span=spans[i],
            right_span=spans[i + 1],
            embedding_distance=float(d),
        )
        for i, d in enumerate(distances)
        if d >= threshold
    ]
