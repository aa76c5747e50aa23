import datetime

import numpy as np
import pytest
from fastapi.testclient import TestClient

from clarion.api.deps import get_metric_fetcher
from clarion.data_fetcher import MetricData
from clarion.derived_metrics import calculate_derived_metrics
from clarion.main import app


def make_dates(n, start=datetime.date(2020, 1, 1)):
    return [(start + datetime.timedelta(days=i)).isoformat() for i in range(n)]


def build_metric_data(n=400):
    """
    Deterministic market cycle: price oscillates around a slow uptrend,
    realized cap lags behind market cap.
    """
    t = np.arange(n, dtype=float)
    close = 20000 + 50 * t + 8000 * np.sin(t / 40)
    supply = np.full(n, 19_000_000.0)
    marketcap = close * supply
    realized_cap = (20000 + 50 * t) * supply * 0.9
    metrics = {
        "close": close,
        "marketcap": marketcap,
        "realized-cap": realized_cap,
        "200d-sma": np.convolve(close, np.ones(20) / 20, mode="same"),
        "realized-price": realized_cap / supply,
        "short-term-holders-supply": np.full(n, 3_000_000.0),
        "short-term-holders-realized-cap": close * 2_800_000.0,
    }
    metrics.update(calculate_derived_metrics(metrics).values)
    return MetricData(dates=make_dates(n), metrics=metrics)


@pytest.fixture(name="metric_data")
def metric_data_fixture():
    return build_metric_data()


@pytest.fixture(name="client")
def client_fixture(metric_data):
    async def fetch_override():
        return metric_data

    app.dependency_overrides[get_metric_fetcher] = lambda: fetch_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
