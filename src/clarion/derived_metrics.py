"""
Derived metrics calculated from upstream on-chain series.

Each derived metric declares the keys it reads. The table is evaluated in
order and every result is folded back into the working mapping, so later
entries (the MVRV deltas, STH MVRV) can build on earlier ones. The order is
validated when this module is imported.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from clarion.core.logging import logger
from clarion.metrics_config import METRICS_LIST

Formula = Callable[[Mapping[str, np.ndarray]], np.ndarray]


@dataclass(frozen=True)
class DerivedMetric:
    name: str
    inputs: Tuple[str, ...]
    formula: Formula


@dataclass
class FormulaOutcome:
    name: str
    values: Optional[np.ndarray] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DerivedMetricsReport:
    values: Dict[str, np.ndarray] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)


# ============================================================================
# ELEMENTWISE HELPERS
# ============================================================================


def safe_ratio(numerator: np.ndarray, denominator: np.ndarray) -> np.ndarray:
    """
    Elementwise numerator / denominator.

    NaN wherever either input is NaN or the denominator is exactly 0,
    so the result never contains +/-Infinity from a zero divisor.
    """
    num = np.asarray(numerator, dtype=float)
    den = np.asarray(denominator, dtype=float)
    if num.shape != den.shape:
        raise ValueError(f"Length mismatch: {num.shape[0]} vs {den.shape[0]}")

    result = np.full(num.shape, np.nan)
    valid = ~np.isnan(num) & ~np.isnan(den) & (den != 0)
    np.divide(num, den, out=result, where=valid)
    return result


def safe_product(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    a = np.asarray(left, dtype=float)
    b = np.asarray(right, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Length mismatch: {a.shape[0]} vs {b.shape[0]}")
    # NaN propagates through multiplication
    return a * b


def percent_delta(series: np.ndarray, days: int) -> np.ndarray:
    """
    Percentage change over `days`: (x[i] - x[i-k]) / x[i-k] * 100.

    The first `days` entries are NaN. NaN also wherever either endpoint
    is NaN or the past value is 0.
    """
    values = np.asarray(series, dtype=float)
    result = np.full(values.shape, np.nan)
    if days <= 0 or len(values) <= days:
        return result

    current = values[days:]
    past = values[:-days]
    result[days:] = safe_ratio(current - past, past) * 100
    return result


# ============================================================================
# FORMULAS
# ============================================================================


def _mvrv_ratio(m: Mapping[str, np.ndarray]) -> np.ndarray:
    return safe_ratio(m["marketcap"], m["realized-cap"])


def _mvrv_delta(days: int) -> Formula:
    def formula(m: Mapping[str, np.ndarray]) -> np.ndarray:
        return percent_delta(m["mvrv-ratio"], days)

    return formula


def _mayer_multiple(m: Mapping[str, np.ndarray]) -> np.ndarray:
    return safe_ratio(m["close"], m["200d-sma"])


def _sth_market_cap(m: Mapping[str, np.ndarray]) -> np.ndarray:
    return safe_product(m["short-term-holders-supply"], m["close"])


def _sth_mvrv_ratio(m: Mapping[str, np.ndarray]) -> np.ndarray:
    return safe_ratio(m["sth-market-cap"], m["short-term-holders-realized-cap"])


MVRV_DELTA_DAYS = (30, 90, 155, 180)

DERIVED_METRICS: Tuple[DerivedMetric, ...] = (
    DerivedMetric("mvrv-ratio", ("marketcap", "realized-cap"), _mvrv_ratio),
    *(
        DerivedMetric(f"mvrv-ratio-delta-{days}d", ("mvrv-ratio",), _mvrv_delta(days))
        for days in MVRV_DELTA_DAYS
    ),
    DerivedMetric("mayer-multiple", ("close", "200d-sma"), _mayer_multiple),
    DerivedMetric("sth-market-cap", ("short-term-holders-supply", "close"), _sth_market_cap),
    DerivedMetric(
        "sth-mvrv-ratio",
        ("sth-market-cap", "short-term-holders-realized-cap"),
        _sth_mvrv_ratio,
    ),
)


def validate_derived_order(
    derived: Sequence[DerivedMetric], base_keys: Sequence[str]
) -> None:
    """
    Check that every derived metric only reads base keys or earlier derived metrics.

    Raises:
        ValueError: If an input is unknown or declared later in the table
    """
    available = set(base_keys)
    for entry in derived:
        missing = [key for key in entry.inputs if key not in available]
        if missing:
            raise ValueError(
                f"Derived metric '{entry.name}' depends on {missing}, "
                "which are neither upstream metrics nor declared before it"
            )
        available.add(entry.name)


validate_derived_order(DERIVED_METRICS, METRICS_LIST)


# ============================================================================
# EVALUATION
# ============================================================================


def _series_length(metrics: Mapping[str, Sequence[float]]) -> int:
    for values in metrics.values():
        if values is not None and len(values) > 0:
            return len(values)
    return 0


def evaluate_formula(
    entry: DerivedMetric, metrics: Mapping[str, np.ndarray], length: int
) -> FormulaOutcome:
    """
    Evaluate one derived metric without raising.

    Returns a FormulaOutcome carrying either the values or the error message.
    """
    missing = [
        key for key in entry.inputs if metrics.get(key) is None or len(metrics[key]) == 0
    ]
    if missing:
        return FormulaOutcome(entry.name, error=f"missing inputs: {', '.join(missing)}")

    try:
        values = np.asarray(entry.formula(metrics), dtype=float)
    except Exception as e:
        return FormulaOutcome(entry.name, error=f"{type(e).__name__}: {e}")

    if values.ndim != 1 or len(values) != length:
        return FormulaOutcome(
            entry.name,
            error=f"returned invalid array: length={len(values)}, expected={length}",
        )
    return FormulaOutcome(entry.name, values=values)


def calculate_derived_metrics(
    metrics: Mapping[str, Sequence[float]],
    derived: Sequence[DerivedMetric] = DERIVED_METRICS,
) -> DerivedMetricsReport:
    """
    Calculate all derived metrics from a mapping of upstream series.

    A failing formula does not abort its siblings: it is recorded in
    `failures` and replaced by an all-NaN series of the date-axis length.

    Args:
        metrics: Metric key -> aligned series
        derived: Ordered derived-metric table (default: DERIVED_METRICS)

    Returns:
        DerivedMetricsReport with the derived values and any failures
    """
    length = _series_length(metrics)
    working: Dict[str, np.ndarray] = {
        key: np.asarray(values, dtype=float) for key, values in metrics.items()
    }
    report = DerivedMetricsReport()

    for entry in derived:
        outcome = evaluate_formula(entry, working, length)
        if outcome.ok:
            values = outcome.values
        else:
            logger.error(f"Error calculating derived metric {entry.name}: {outcome.error}")
            report.failures[entry.name] = outcome.error
            values = np.full(length, np.nan)

        report.values[entry.name] = values
        working[entry.name] = values

    valid_counts = {
        name: int(np.count_nonzero(~np.isnan(values))) for name, values in report.values.items()
    }
    logger.debug(f"Derived metrics valid sample counts: {valid_counts}")
    return report


def calculate_derived_metrics_dict(
    metrics: Mapping[str, Sequence[float]],
) -> Dict[str, np.ndarray]:
    return calculate_derived_metrics(metrics).values
