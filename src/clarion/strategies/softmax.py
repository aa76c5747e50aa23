"""
Softmax allocation model for tuned DCA.

Temperature controls sensitivity: higher = more uniform weights,
lower = more extreme concentration on the strongest signals.
"""
from typing import Sequence

import numpy as np

from clarion.core.logging import logger

SUM_TOLERANCE = 1e-9


def softmax(z_scores: Sequence[float], temperature: float = 1.0) -> np.ndarray:
    """
    Temperature-scaled softmax with max subtraction for numerical stability.

    weight[i] = exp(z[i]/T - max) / sum_j exp(z[j]/T - max)

    Non-finite z-scores are treated as 0 before scaling.

    Raises:
        ValueError: If temperature <= 0
    """
    if temperature <= 0:
        raise ValueError("Temperature must be positive")

    z = np.asarray(z_scores, dtype=float)
    if len(z) == 0:
        return np.array([], dtype=float)

    scaled = np.where(np.isfinite(z), z, 0.0) / temperature
    exp_scores = np.exp(scaled - scaled.max())
    total = exp_scores.sum()
    weights = exp_scores / total if total > 0 else np.zeros_like(exp_scores)

    weight_sum = weights.sum()
    if abs(weight_sum - 1.0) > SUM_TOLERANCE:
        logger.warning(f"Softmax weights do not sum to 1: sum={weight_sum}")

    return weights


def softmax_allocation(z_scores: Sequence[float], temperature: float = 1.0) -> np.ndarray:
    """
    Daily allocation multipliers from the softmax of negated z-scores.

    Lower (undervalued) z-scores get larger weights. Weights are scaled by the
    number of days so the average multiplier is 1 and the total budget equals
    regular DCA over the same window.
    """
    z = np.asarray(z_scores, dtype=float)
    return softmax(-z, temperature) * len(z)
