"""
Rolling window z-score calculations for metric series.

Default window is 4 years (1460 days); presets: 2yr (730), 4yr (1460),
8yr (2920) and all (whole history so far).
"""

import math
from typing import Optional, Sequence, Union

import numpy as np

Z_SCORE_WINDOWS = {
    "2yr": 730,
    "4yr": 1460,
    "8yr": 2920,
    "all": math.inf,
}

WindowSize = Optional[Union[int, float]]


def _is_infinite(window_size: WindowSize) -> bool:
    return window_size is None or window_size == math.inf


def resolve_window(window: Union[str, int, float, None]) -> Union[int, float]:
    """
    Map a preset name ("4yr"), a day count ("365", 365) or "all"/None to a window size.

    Raises:
        ValueError: If the window is unknown or not a positive day count
    """
    if window is None:
        return math.inf
    if isinstance(window, str):
        key = window.strip().lower()
        if key in Z_SCORE_WINDOWS:
            return Z_SCORE_WINDOWS[key]
        try:
            window = int(key)
        except ValueError:
            raise ValueError(
                f"Unknown window '{window}'. Use one of {list(Z_SCORE_WINDOWS)} or a day count"
            )
    if window == math.inf:
        return math.inf
    if window <= 0:
        raise ValueError(f"Window size must be positive, got {window}")
    return int(window)


def calculate_z_scores(series: Sequence[float], window_size: WindowSize) -> np.ndarray:
    """
    Calculate a trailing-window z-score for every sample of a series.

    For index i the window is [max(0, i - window_size + 1), i], or [0, i] when
    the window is infinite. Mean and population standard deviation (divide
    by count) are taken over the non-NaN samples in the window.

    Output rules per index:
    - NaN if the current sample is NaN
    - NaN if fewer than 2 valid samples are in the window
    - 0.0 if the window is constant (std == 0)
    - (x - mean) / std otherwise

    Mean and std are recomputed for each index, so the cost is O(n * w).

    Args:
        series: Metric values; None entries are treated as NaN
        window_size: Trailing window in days, or math.inf / None for all history

    Returns:
        numpy array of z-scores, same length as the input

    Example:
        >>> z = calculate_z_scores([1.0, 2.0, 3.0], window_size=3)
        >>> # index 0: NaN (one sample), index 1: 1.0, index 2: 1 / sqrt(2/3) ≈ 1.2247
    """
    values = np.asarray(series, dtype=float)
    n = len(values)
    z_scores = np.full(n, np.nan)
    if n == 0:
        return z_scores

    infinite = _is_infinite(window_size)
    if not infinite and window_size <= 0:
        raise ValueError(f"Window size must be positive, got {window_size}")

    valid_mask = ~np.isnan(values)

    for i in range(n):
        if not valid_mask[i]:
            continue

        start = 0 if infinite else max(0, i - int(window_size) + 1)
        window = values[start : i + 1]
        window = window[valid_mask[start : i + 1]]

        count = len(window)
        if count < 2:
            continue

        # Constant window; summing can leave rounding residue in the mean
        if window.max() == window.min():
            z_scores[i] = 0.0
            continue

        mean = window.sum() / count
        std = math.sqrt(((window - mean) ** 2).sum() / count)
        z_scores[i] = 0.0 if std == 0 else (values[i] - mean) / std

    return z_scores
