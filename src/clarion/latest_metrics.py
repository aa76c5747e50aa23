"""
Latest-value snapshot of the headline metrics with 30/90/180-day changes.
"""

import math
from typing import Any, Dict, Optional, Sequence

import numpy as np

from clarion.data_fetcher import MetricData

CHANGE_PERIODS = (30, 90, 180)

# Summary field name -> metric key
HEADLINE_METRICS = {
    "price": "close",
    "market_cap": "marketcap",
    "realized_cap": "realized-cap",
    "mvrv": "mvrv-ratio",
}


def _as_optional(value: float) -> Optional[float]:
    return None if value is None or not math.isfinite(value) else float(value)


def latest_value(series: Optional[Sequence[float]]) -> Optional[float]:
    if series is None or len(series) == 0:
        return None
    return _as_optional(float(series[-1]))


def percentage_change(series: Optional[Sequence[float]], days_ago: int) -> Optional[float]:
    """
    Percentage change of the latest value against the value `days_ago` days earlier.

    Returns None if history is too short, either value is missing,
    or the past value is <= 0.
    """
    if series is None or len(series) <= days_ago:
        return None

    current = _as_optional(float(series[-1]))
    past = _as_optional(float(series[-1 - days_ago]))
    if current is None or past is None or past <= 0:
        return None
    return (current - past) / past * 100


def get_latest_metrics_summary(data: MetricData) -> Dict[str, Any]:
    """
    Build the headline snapshot from a fetched MetricData.

    Returns:
        Dictionary with latest_date, price, market_cap, realized_cap,
        mvrv_ratio and <name>_change_<N>d for N in 30, 90, 180.
    """
    metrics = data.metrics
    market_cap = metrics.get("marketcap")
    realized_cap = metrics.get("realized-cap")

    mvrv_series = metrics.get("mvrv-ratio")
    if mvrv_series is None and market_cap is not None and realized_cap is not None:
        with np.errstate(divide="ignore", invalid="ignore"):
            mvrv_series = np.where(realized_cap > 0, market_cap / realized_cap, np.nan)

    summary: Dict[str, Any] = {
        "latest_date": data.dates[-1] if data.dates else None,
        "price": latest_value(metrics.get("close")),
        "market_cap": latest_value(market_cap),
        "realized_cap": latest_value(realized_cap),
        "mvrv_ratio": latest_value(mvrv_series),
    }

    for name, key in HEADLINE_METRICS.items():
        series = mvrv_series if key == "mvrv-ratio" else metrics.get(key)
        for days in CHANGE_PERIODS:
            summary[f"{name}_change_{days}d"] = percentage_change(series, days)

    return summary
