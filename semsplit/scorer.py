# Version: v1.0
"""
semsplit.scorer — Weighted linear fusion of boundary signals.
"""

from typing import Iterable, Mapping

from semsplit.config import WEIGHT_SUM_TOLERANCE, logger
from semsplit.models import BoundaryScore, BoundarySignal


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class BoundaryScorer:
    """Fuse named boundary signals into one score in [0, 1].

    Args:
        weights: Mapping of signal name to non-negative weight. Signals with
            no entry are ignored. A sum far from 1.0 is logged, not rejected;
            the score is normalised by the weights actually present.
    """

    def __init__(self, weights: Mapping[str, float]):
        self.weights = dict(weights)
        total = sum(self.weights.values())
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            logger.warning(f"Boundary weights sum to {total:.3f}, expected 1.0")

    def score(self, signals: Iterable[BoundarySignal]) -> BoundaryScore:
        """Compute Σ(strength × weight) / Σ(weight) over weighted signals.

        Returns:
            BoundaryScore; weighted_score is 0.0 when no signal has a weight.
        """
        kept = tuple(
            BoundarySignal(s.name, _clamp(s.strength), _clamp(s.confidence))
            for s in signals
        )
        numerator = 0.0
        denominator = 0.0
        for signal in kept:
            weight = self.weights.get(signal.name)
            if weight is None:
                continue
            numerator += signal.strength * weight
            denominator += weight
        weighted = _clamp(numerator / denominator) if denominator > 0 else 0.0
        return BoundaryScore(signals=kept, weighted_score=weighted)
