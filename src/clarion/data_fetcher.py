"""
Data fetching module for on-chain metric time series.

This module fetches every configured metric from the vecs API concurrently,
aligns all series to one canonical date axis and appends the derived metrics.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from clarion.core.logging import logger
from clarion.derived_metrics import calculate_derived_metrics
from clarion.metrics_config import (
    METRICS_LIST,
    PRICE_METRIC,
    FetchStrategy,
    fetch_strategy_for,
)
from clarion.providers.brk import BrkClient, MetricFetchError


@dataclass
class MetricData:
    """
    One fetched snapshot: a date axis plus metric series of the same length.
    """
    dates: List[str]
    metrics: Dict[str, np.ndarray] = field(default_factory=dict)
    derived_failures: Dict[str, str] = field(default_factory=dict)

    @property
    def prices(self) -> np.ndarray:
        return self.metrics.get(PRICE_METRIC, np.array([]))

    def to_frame(self) -> pd.DataFrame:
        """DataFrame indexed by date with one column per metric."""
        df = pd.DataFrame(self.metrics, index=pd.to_datetime(self.dates))
        df.index.name = "date"
        return df


def to_float_array(metric: str, values: Sequence[Any]) -> np.ndarray:
    """Convert an upstream value list to floats; None becomes NaN."""
    try:
        return np.array(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise MetricFetchError(metric, f"Non-numeric values: {e}") from e


def align_series(values: Sequence[float], length: int, metric: str = "") -> np.ndarray:
    """
    Align a series to the canonical date axis length.

    - Equal length: returned as-is
    - Shorter: left-padded with NaN (the most recent samples line up)
    - Longer: only the most recent `length` samples are kept

    Args:
        values: Series to align
        length: Length of the canonical date axis
        metric: Metric key, used for logging only

    Returns:
        numpy array of exactly `length` samples
    """
    arr = np.asarray(values, dtype=float)
    if len(arr) == length:
        return arr
    if len(arr) < length:
        padding = np.full(length - len(arr), np.nan)
        return np.concatenate([padding, arr])

    logger.warning(
        f"{metric or 'series'} has {len(arr)} samples but the date axis has {length}; "
        f"dropping the oldest {len(arr) - length}"
    )
    return arr[len(arr) - length:] if length > 0 else arr[:0]


def _check_date_axis(dates: Sequence[str]) -> None:
    if any(later <= earlier for earlier, later in zip(dates, dates[1:])):
        logger.warning("Date axis is not strictly increasing")


async def _fetch_direct_with_close_dates(
    client: BrkClient, metric: str
) -> Tuple[List[str], List[Any]]:
    values = await client.fetch_vec(metric)
    dates, _ = await client.query_metric(PRICE_METRIC)
    return dates, values


async def _fetch_one(client: BrkClient, metric: str) -> Tuple[List[str], np.ndarray]:
    strategy = fetch_strategy_for(metric)

    try:
        dates, values = await client.query_metric(metric)
    except MetricFetchError as e:
        if strategy is not FetchStrategy.DIRECT_WITH_CLOSE_DATES:
            raise
        logger.warning(f"Query endpoint failed for {metric} ({e}); using direct value endpoint")
        dates, values = await _fetch_direct_with_close_dates(client, metric)

    return dates, to_float_array(metric, values)


async def fetch_metric(
    metric: str,
    api_base_url: Optional[str] = None,
    client: Optional[BrkClient] = None,
) -> Tuple[List[str], np.ndarray]:
    """
    Fetch one metric with its own date axis (no alignment, no derived metrics).

    Raises:
        MetricFetchError: If the request fails or the payload is malformed
    """
    if client is not None:
        return await _fetch_one(client, metric)
    async with BrkClient(api_base_url) as own_client:
        return await _fetch_one(own_client, metric)


async def _gather_all(
    client: BrkClient, metric_keys: Sequence[str]
) -> List[Tuple[List[str], np.ndarray]]:
    tasks = [asyncio.ensure_future(_fetch_one(client, key)) for key in metric_keys]
    try:
        return await asyncio.gather(*tasks)
    except Exception:
        # One failure aborts the batch; stop the requests still in flight
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def fetch_all_metrics(
    api_base_url: Optional[str] = None,
    metric_keys: Optional[Sequence[str]] = None,
    client: Optional[BrkClient] = None,
) -> MetricData:
    """
    Fetch all configured metrics concurrently and align them to one date axis.

    The canonical date axis is the `close` metric's dates when present,
    otherwise the first metric's dates. Derived metrics are calculated after
    alignment and merged into the result (overriding same-named upstream series).

    Args:
        api_base_url: Upstream host (default: settings.API_BASE_URL)
        metric_keys: Metrics to fetch (default: METRICS_LIST)
        client: Optional pre-built BrkClient (not closed by this function)

    Returns:
        MetricData with aligned base and derived metrics

    Raises:
        MetricFetchError: If any single metric fails; the whole batch is aborted
    """
    metric_keys = list(METRICS_LIST if metric_keys is None else metric_keys)
    logger.info(f"Fetching {len(metric_keys)} metrics...")

    if client is not None:
        results = await _gather_all(client, metric_keys)
    else:
        async with BrkClient(api_base_url) as own_client:
            results = await _gather_all(own_client, metric_keys)

    fetched = dict(zip(metric_keys, results))
    if not fetched:
        return MetricData(dates=[])

    if PRICE_METRIC in fetched:
        dates = list(fetched[PRICE_METRIC][0])
    else:
        dates = list(results[0][0])
    _check_date_axis(dates)

    metrics: Dict[str, np.ndarray] = {
        key: align_series(values, len(dates), key) for key, (_, values) in fetched.items()
    }

    report = calculate_derived_metrics(metrics)
    metrics.update(report.values)

    logger.info(
        f"Successfully fetched {len(metrics)} metrics (including {len(report.values)} derived) "
        f"with {len(dates)} data points"
    )
    if report.failures:
        logger.warning(f"Derived metrics failed: {sorted(report.failures)}")

    return MetricData(dates=dates, metrics=metrics, derived_failures=report.failures)


def fetch_all_metrics_sync(
    api_base_url: Optional[str] = None,
    metric_keys: Optional[Sequence[str]] = None,
) -> MetricData:
    """Blocking wrapper around fetch_all_metrics for scripts and the CLI."""
    return asyncio.run(fetch_all_metrics(api_base_url, metric_keys))


async def fetch_latest_date(
    api_base_url: Optional[str] = None,
    client: Optional[BrkClient] = None,
) -> str:
    """
    Fetch the most recent date on the upstream date index.

    Raises:
        MetricFetchError: If the request fails or the response is not a date string
    """
    if client is not None:
        return await client.latest_date()
    async with BrkClient(api_base_url) as own_client:
        return await own_client.latest_date()
