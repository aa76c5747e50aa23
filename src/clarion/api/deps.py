import math
from typing import Awaitable, Callable, List, Optional, Sequence

import numpy as np

from clarion.data_fetcher import MetricData, fetch_all_metrics

MetricFetcher = Callable[[], Awaitable[MetricData]]


def get_metric_fetcher() -> MetricFetcher:
    """
    Dependency returning the coroutine that loads a fresh MetricData.

    Overridden in tests via app.dependency_overrides.
    """
    return fetch_all_metrics


def series_to_list(values: Sequence[float]) -> List[Optional[float]]:
    """JSON-safe list: NaN and +/-inf become None."""
    return [float(v) if math.isfinite(v) else None for v in np.asarray(values, dtype=float)]


def window_to_schema(window) -> Optional[int]:
    return None if window == math.inf else int(window)
