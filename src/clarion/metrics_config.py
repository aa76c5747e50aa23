"""
Central configuration for upstream and derived on-chain metrics.

Add new upstream metrics to METRICS_LIST and give them a display name and a
price-correlation direction below. Derived metrics are declared in
derived_metrics.py.
"""

from enum import Enum
from typing import Dict


class FetchStrategy(str, Enum):
    """How a single upstream metric is retrieved."""

    # GET /api/vecs/query?index=dateindex&ids=date,<key>&format=json
    QUERY = "query"
    # Query first; on failure read /api/vecs/dateindex-to-<key> and borrow
    # the date axis from the `close` query.
    DIRECT_WITH_CLOSE_DATES = "direct_with_close_dates"


PRICE_METRIC = "close"

METRICS_LIST = [
    "close",
    "realized-price",
    "200d-sma",
    "true-market-mean",
    "vaulted-price",
    "marketcap",
    "realized-cap",
    "adjusted-spent-output-profit-ratio",
    "sell-side-risk-ratio",
    "liveliness",
    "short-term-holders-realized-price",
    "short-term-holders-supply",
    "short-term-holders-utxo-count",
    "short-term-holders-realized-cap",
    "short-term-holders-realized-price-ratio",
    "short-term-holders-realized-profit",
    "short-term-holders-negative-realized-loss",
    "short-term-holders-adjusted-spent-output-profit-ratio",
    "short-term-holders-unrealized-profit",
    "short-term-holders-negative-unrealized-loss",
    "short-term-holders-coinblocks-destroyed",
    "long-term-holders-adjusted-spent-output-profit-ratio",
    "realized-profit",
    "negative-realized-loss",
    "net-realized-profit-and-loss",
    "unrealized-profit",
    "negative-unrealized-loss",
    "net-unrealized-profit-and-loss",
    "long-term-holders-realized-cap",
    "mvrv-ratio",
]

# Metrics not listed here use FetchStrategy.QUERY
FETCH_STRATEGIES: Dict[str, FetchStrategy] = {
    "adjusted-spent-output-profit-ratio": FetchStrategy.DIRECT_WITH_CLOSE_DATES,
}

METRIC_DISPLAY_NAMES: Dict[str, str] = {
    # Price metrics
    "close": "Price",
    "realized-price": "Realized Price",
    "200d-sma": "200d SMA",
    "true-market-mean": "True Market Mean",
    "vaulted-price": "Vaulted Price",
    "short-term-holders-realized-price": "STH Realized Price",
    # Market cap metrics
    "marketcap": "Market Cap",
    "realized-cap": "Network Realized Cap",
    # SOPR metrics
    "adjusted-spent-output-profit-ratio": "Network SOPR",
    "short-term-holders-adjusted-spent-output-profit-ratio": "STH SOPR",
    "long-term-holders-adjusted-spent-output-profit-ratio": "LTH SOPR",
    # Risk and activity metrics
    "sell-side-risk-ratio": "Sell-Side Risk",
    "liveliness": "Liveliness",
    # Supply metrics
    "short-term-holders-supply": "STH Supply",
    "short-term-holders-utxo-count": "STH UTXO Count",
    # Realized P&L metrics
    "realized-profit": "Network Realized Profit",
    "negative-realized-loss": "Network Realized Loss",
    "net-realized-profit-and-loss": "Net Realized P&L",
    "short-term-holders-realized-profit": "STH Realized Profit",
    "short-term-holders-negative-realized-loss": "STH Realized Loss",
    # Unrealized P&L metrics
    "unrealized-profit": "Network Unrealized Profit",
    "negative-unrealized-loss": "Network Unrealized Loss",
    "net-unrealized-profit-and-loss": "Net Unrealized P&L",
    "short-term-holders-unrealized-profit": "STH Unrealized Profit",
    "short-term-holders-negative-unrealized-loss": "STH Unrealized Loss",
    # Realized cap metrics
    "short-term-holders-realized-cap": "STH Realized Cap",
    "long-term-holders-realized-cap": "LTH Realized Cap",
    # Other metrics
    "short-term-holders-realized-price-ratio": "STH Realized Price Ratio",
    "short-term-holders-coinblocks-destroyed": "STH Coins Destroyed",
    # Derived metrics
    "mvrv-ratio": "MVRV Ratio",
    "mvrv-ratio-delta-30d": "MVRV Ratio Δ 30d",
    "mvrv-ratio-delta-90d": "MVRV Ratio Δ 90d",
    "mvrv-ratio-delta-155d": "MVRV Ratio Δ 155d",
    "mvrv-ratio-delta-180d": "MVRV Ratio Δ 180d",
    "mayer-multiple": "Mayer Multiple",
    "sth-market-cap": "STH Market Cap",
    "sth-mvrv-ratio": "STH MVRV Ratio",
}

# Correlation with Bitcoin price:
#   True  = higher value means more expensive
#   False = higher value means cheaper
METRIC_CORRELATION: Dict[str, bool] = {
    "close": True,
    "realized-price": True,
    "200d-sma": True,
    "true-market-mean": True,
    "vaulted-price": True,
    "marketcap": True,
    "realized-cap": True,
    "adjusted-spent-output-profit-ratio": True,
    "short-term-holders-adjusted-spent-output-profit-ratio": True,
    "long-term-holders-adjusted-spent-output-profit-ratio": True,
    "realized-profit": True,
    "unrealized-profit": True,
    "short-term-holders-realized-profit": True,
    "short-term-holders-unrealized-profit": True,
    "long-term-holders-realized-cap": True,
    "short-term-holders-realized-price-ratio": True,
    "short-term-holders-supply": True,
    "short-term-holders-utxo-count": True,
    "short-term-holders-realized-cap": True,
    "short-term-holders-realized-price": True,
    "mvrv-ratio": True,
    "sth-market-cap": True,
    "sth-mvrv-ratio": True,
    "negative-realized-loss": False,
    "negative-unrealized-loss": False,
    "short-term-holders-negative-realized-loss": False,
    "short-term-holders-negative-unrealized-loss": False,
    "sell-side-risk-ratio": False,
    "liveliness": False,
    "short-term-holders-coinblocks-destroyed": False,
    # Sign-dependent; treated as positive for now
    "net-realized-profit-and-loss": True,
    "net-unrealized-profit-and-loss": True,
}


def display_name(metric_key: str) -> str:
    """Human-readable name for a metric key, falling back to the key itself."""
    return METRIC_DISPLAY_NAMES.get(metric_key, metric_key)


def is_positive_correlation(metric_key: str) -> bool:
    return METRIC_CORRELATION.get(metric_key, True)


def fetch_strategy_for(metric_key: str) -> FetchStrategy:
    return FETCH_STRATEGIES.get(metric_key, FetchStrategy.QUERY)
