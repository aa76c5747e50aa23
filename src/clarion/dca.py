"""
DCA primitives: regular DCA, tuned DCA and the registry of allocation models.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union

import numpy as np

from clarion.strategies.softmax import softmax_allocation
from clarion.strategies.zone_based import zone_based_allocation

WindowSize = Optional[Union[int, float]]


@dataclass
class TunedDCAResult:
    btc_bought: np.ndarray
    daily_allocations: np.ndarray


@dataclass(frozen=True)
class AllocationModel:
    """
    A named allocation model.

    `allocate` maps a (windowed) z-score array and the ranking config to
    per-day multipliers of the daily budget.
    """
    name: str
    allocate: Callable[[np.ndarray, Any], np.ndarray]


def trailing_window(values: Sequence[float], window_size: WindowSize) -> np.ndarray:
    """Last `window_size` samples, or everything for an infinite window."""
    arr = np.asarray(values, dtype=float)
    if window_size is None or window_size == math.inf:
        return arr
    return arr[-int(window_size):] if window_size > 0 else arr[:0]


def _btc_for_spend(prices: np.ndarray, spend: np.ndarray) -> np.ndarray:
    # No purchase on days without a usable price
    tradable = np.isfinite(prices) & (prices > 0)
    btc = np.zeros(len(prices))
    np.divide(spend, prices, out=btc, where=tradable)
    return btc


def calculate_regular_dca(
    prices: Sequence[float], budget_per_day: float, window_size: WindowSize
) -> np.ndarray:
    """
    BTC bought each day when investing a fixed budget over the trailing window.

    Example:
        >>> calculate_regular_dca([100, 90, 110, 80, 120], 10, 5).sum()
        >>> # 10/100 + 10/90 + 10/110 + 10/80 + 10/120 ≈ 0.4549
    """
    data = trailing_window(prices, window_size)
    return _btc_for_spend(data, np.full(len(data), float(budget_per_day)))


def calculate_tuned_dca(
    prices: Sequence[float],
    z_scores: Sequence[float],
    budget_per_day: float,
    window_size: WindowSize,
    model: Callable[..., np.ndarray],
    daily_budget_cap: Optional[float] = None,
    **model_kwargs,
) -> TunedDCAResult:
    """
    Signal-adjusted DCA over the trailing window.

    daily allocation = model multiplier * budget_per_day, capped at
    daily_budget_cap when given. Days with a price <= 0 or NaN buy nothing
    and spend nothing.

    Raises:
        ValueError: If prices, z-scores and multipliers are not aligned
    """
    data = trailing_window(prices, window_size)
    z = trailing_window(z_scores, window_size)

    if len(data) != len(z):
        raise ValueError(f"Data length mismatch: prices={len(data)}, z_scores={len(z)}")

    multipliers = np.asarray(model(z, **model_kwargs), dtype=float)
    if len(multipliers) != len(data):
        raise ValueError(
            f"Multipliers length mismatch: multipliers={len(multipliers)}, prices={len(data)}"
        )

    allocations = multipliers * budget_per_day
    if daily_budget_cap is not None:
        allocations = np.minimum(allocations, daily_budget_cap)

    tradable = np.isfinite(data) & (data > 0)
    allocations = np.where(tradable, allocations, 0.0)

    return TunedDCAResult(
        btc_bought=_btc_for_spend(data, allocations),
        daily_allocations=allocations,
    )


DCA_MODELS: Dict[str, AllocationModel] = {
    "zone_based": AllocationModel(
        name="zone_based",
        allocate=lambda z, config: zone_based_allocation(
            z,
            zone_size=config.zone_size,
            baseline_multiplier=1.0,
            max_bonus=config.max_bonus,
        ),
    ),
    "softmax": AllocationModel(
        name="softmax",
        allocate=lambda z, config: softmax_allocation(z, temperature=config.temperature),
    ),
}
