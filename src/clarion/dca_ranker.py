"""
DCA backtest and ranking sweep.

Backtests every (metric, allocation model) combination over the trailing
window and ranks them by profit percentage against the same final price.
A combination that fails is recorded as a RankingFailure and left out of
the ranking; the sweep itself never aborts on one bad metric.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from clarion.config import settings
from clarion.core.logging import logger
from clarion.dca import (
    DCA_MODELS,
    AllocationModel,
    calculate_regular_dca,
    calculate_tuned_dca,
    trailing_window,
)
from clarion.metrics_config import METRICS_LIST, display_name, is_positive_correlation
from clarion.zscore import calculate_z_scores

OUTPERFORM_THRESHOLD = 5.0
UNDERPERFORM_THRESHOLD = -5.0

BASELINE_METRIC_KEY = "regular-dca"
BASELINE_MODEL_NAME = "baseline"


@dataclass
class DCARankingConfig:
    budget_per_day: float = settings.DCA_BUDGET_PER_DAY
    window_size: Union[int, float] = settings.DCA_WINDOW_SIZE
    zone_size: float = settings.DCA_ZONE_SIZE
    max_bonus: float = settings.DCA_MAX_BONUS
    daily_budget_cap: Optional[float] = settings.DCA_DAILY_BUDGET_CAP
    temperature: float = 1.0  # softmax model only


@dataclass
class DCARankingResult:
    metric_key: str
    metric_name: str
    model_name: str
    total_btc: float
    total_spent: float
    current_value: float
    profit: float
    profit_percentage: float
    avg_price: float
    final_price: float
    performance: str  # "outperform", "neutral" or "underperform"
    # Daily data for charting
    daily_allocations: np.ndarray = field(repr=False, default_factory=lambda: np.array([]))
    btc_bought: np.ndarray = field(repr=False, default_factory=lambda: np.array([]))
    dates: List[str] = field(repr=False, default_factory=list)
    prices: np.ndarray = field(repr=False, default_factory=lambda: np.array([]))
    metric_values: np.ndarray = field(repr=False, default_factory=lambda: np.array([]))
    z_scores: np.ndarray = field(repr=False, default_factory=lambda: np.array([]))

    def summary(self) -> dict:
        """Scalar fields only (no per-day arrays)."""
        return {
            "metric_key": self.metric_key,
            "metric_name": self.metric_name,
            "model_name": self.model_name,
            "total_btc": self.total_btc,
            "total_spent": self.total_spent,
            "current_value": self.current_value,
            "profit": self.profit,
            "profit_percentage": self.profit_percentage,
            "avg_price": self.avg_price,
            "final_price": self.final_price,
            "performance": self.performance,
        }


@dataclass
class RankingFailure:
    metric_key: str
    model_name: Optional[str]
    reason: str


@dataclass
class RankingReport:
    results: List[DCARankingResult] = field(default_factory=list)
    failures: List[RankingFailure] = field(default_factory=list)


def classify_performance(profit_percentage: float) -> str:
    if profit_percentage > OUTPERFORM_THRESHOLD:
        return "outperform"
    if profit_percentage < UNDERPERFORM_THRESHOLD:
        return "underperform"
    return "neutral"


def _build_result(
    metric_key: str,
    metric_name: str,
    model_name: str,
    btc_bought: np.ndarray,
    daily_allocations: np.ndarray,
    prices: np.ndarray,
    dates: List[str],
    metric_values: Optional[np.ndarray] = None,
    z_scores: Optional[np.ndarray] = None,
) -> DCARankingResult:
    total_btc = float(btc_bought.sum())
    total_spent = float(daily_allocations.sum())
    final_price = float(prices[-1])
    current_value = total_btc * final_price
    profit = current_value - total_spent
    profit_percentage = (profit / total_spent) * 100 if total_spent > 0 else 0.0
    avg_price = total_spent / total_btc if total_btc > 0 else 0.0

    return DCARankingResult(
        metric_key=metric_key,
        metric_name=metric_name,
        model_name=model_name,
        total_btc=total_btc,
        total_spent=total_spent,
        current_value=current_value,
        profit=profit,
        profit_percentage=profit_percentage,
        avg_price=avg_price,
        final_price=final_price,
        performance=classify_performance(profit_percentage),
        daily_allocations=daily_allocations,
        btc_bought=btc_bought,
        dates=dates,
        prices=prices,
        metric_values=metric_values if metric_values is not None else np.array([]),
        z_scores=z_scores if z_scores is not None else np.array([]),
    )


def _window_dates(dates: Optional[Sequence[str]], length: int) -> List[str]:
    if not dates:
        return []
    return list(dates)[-length:] if length > 0 else []


def _check_final_price(prices: np.ndarray) -> None:
    if len(prices) == 0:
        raise ValueError("Empty price window")
    if not np.isfinite(prices[-1]) or prices[-1] <= 0:
        raise ValueError("Final price is missing")


def calculate_regular_dca_baseline(
    price_data: Sequence[float],
    config: DCARankingConfig,
    dates: Optional[Sequence[str]] = None,
) -> DCARankingResult:
    """
    Regular DCA over the trailing window: budget_per_day every day.

    total_spent = budget_per_day * number of days in the window.

    Raises:
        ValueError: If the window is empty or its final price is missing
    """
    prices = trailing_window(price_data, config.window_size)
    _check_final_price(prices)
    btc_bought = calculate_regular_dca(prices, config.budget_per_day, config.window_size)
    daily_allocations = np.full(len(prices), float(config.budget_per_day))

    result = _build_result(
        metric_key=BASELINE_METRIC_KEY,
        metric_name="Regular DCA",
        model_name=BASELINE_MODEL_NAME,
        btc_bought=btc_bought,
        daily_allocations=daily_allocations,
        prices=prices,
        dates=_window_dates(dates, len(prices)),
    )
    logger.info(
        f"Regular DCA baseline: {len(prices)} days, total_btc={result.total_btc:.6f}, "
        f"total_spent={result.total_spent:.2f}, profit={result.profit_percentage:.2f}%"
    )
    return result


def orient_z_scores(z_scores: np.ndarray, metric_key: str) -> np.ndarray:
    """
    Flip z-scores of metrics where a higher value means cheaper, so that
    a negative z-score always reads as undervalued.
    """
    return z_scores if is_positive_correlation(metric_key) else -z_scores


def calculate_metric_model_profitability(
    metric_data: Sequence[float],
    price_data: Sequence[float],
    metric_key: str,
    model: AllocationModel,
    config: DCARankingConfig,
    dates: Optional[Sequence[str]] = None,
) -> DCARankingResult:
    """
    Backtest a single metric + model combination.

    Z-scores are computed on the windowed metric data only, so no value
    after the start of the window influences an earlier allocation.

    Raises:
        ValueError: If the metric and price series are not aligned
    """
    metric = np.asarray(metric_data, dtype=float)
    prices = np.asarray(price_data, dtype=float)
    if len(metric) != len(prices):
        raise ValueError(
            f"Data length mismatch: metric={len(metric)}, prices={len(prices)}"
        )

    windowed_metric = trailing_window(metric, config.window_size)
    windowed_prices = trailing_window(prices, config.window_size)
    _check_final_price(windowed_prices)

    z_scores = calculate_z_scores(windowed_metric, config.window_size)
    oriented = orient_z_scores(z_scores, metric_key)

    tuned = calculate_tuned_dca(
        windowed_prices,
        oriented,
        config.budget_per_day,
        config.window_size,
        lambda z: model.allocate(z, config),
        daily_budget_cap=config.daily_budget_cap,
    )

    if len(tuned.btc_bought) != len(tuned.daily_allocations):
        raise ValueError(
            f"Length mismatch: btc_bought={len(tuned.btc_bought)}, "
            f"daily_allocations={len(tuned.daily_allocations)}"
        )

    return _build_result(
        metric_key=metric_key,
        metric_name=display_name(metric_key),
        model_name=model.name,
        btc_bought=tuned.btc_bought,
        daily_allocations=tuned.daily_allocations,
        prices=windowed_prices,
        dates=_window_dates(dates, len(windowed_prices)),
        metric_values=windowed_metric,
        z_scores=z_scores,
    )


def rank_strategies(
    metrics_data: Mapping[str, Sequence[float]],
    price_data: Sequence[float],
    config: Optional[DCARankingConfig] = None,
    dates: Optional[Sequence[str]] = None,
    metric_keys: Optional[Sequence[str]] = None,
    models: Optional[Mapping[str, AllocationModel]] = None,
) -> RankingReport:
    """
    Run the full ranking sweep and collect successes and failures explicitly.

    Args:
        metrics_data: Metric key -> series aligned with price_data
        price_data: Daily BTC price series
        config: Ranking configuration (default: DCARankingConfig())
        dates: Optional date axis aligned with price_data
        metric_keys: Metrics to test (default: METRICS_LIST)
        models: Allocation models to test (default: DCA_MODELS)

    Returns:
        RankingReport with results sorted by profit percentage (descending)
    """
    config = config or DCARankingConfig()
    metric_keys = METRICS_LIST if metric_keys is None else metric_keys
    models = DCA_MODELS if models is None else models
    report = RankingReport()

    if price_data is None or len(price_data) == 0:
        logger.error("No price data available for DCA calculations")
        return report

    logger.info(
        f"Ranking {len(metric_keys)} metrics x {len(models)} models "
        f"(budget={config.budget_per_day}/day, window={config.window_size}, "
        f"zone_size={config.zone_size})"
    )

    try:
        report.results.append(calculate_regular_dca_baseline(price_data, config, dates))
    except Exception as e:
        logger.error(f"Error calculating regular DCA baseline: {e}")
        report.failures.append(RankingFailure(BASELINE_METRIC_KEY, BASELINE_MODEL_NAME, str(e)))

    for metric_key in metric_keys:
        metric_data = metrics_data.get(metric_key)
        if metric_data is None or len(metric_data) == 0:
            logger.warning(f"No data for metric: {metric_key}")
            continue

        if len(metric_data) != len(price_data):
            reason = (
                f"Data length mismatch: metric={len(metric_data)}, prices={len(price_data)}"
            )
            logger.error(f"Skipping {metric_key}: {reason}")
            report.failures.append(RankingFailure(metric_key, None, reason))
            continue

        for model_name, model in models.items():
            try:
                result = calculate_metric_model_profitability(
                    metric_data, price_data, metric_key, model, config, dates
                )
            except Exception as e:
                logger.error(f"Error calculating profitability for {metric_key} + {model_name}: {e}")
                report.failures.append(RankingFailure(metric_key, model_name, str(e)))
                continue
            report.results.append(result)

    report.results.sort(key=lambda r: r.profit_percentage, reverse=True)
    logger.info(
        f"Generated {len(report.results)} DCA ranking results ({len(report.failures)} failed)"
    )
    return report


def generate_dca_rankings(
    metrics_data: Mapping[str, Sequence[float]],
    price_data: Sequence[float],
    config: Optional[DCARankingConfig] = None,
    dates: Optional[Sequence[str]] = None,
    metric_keys: Optional[Sequence[str]] = None,
    models: Optional[Mapping[str, AllocationModel]] = None,
) -> List[DCARankingResult]:
    """Ranked results only; see rank_strategies for failures."""
    return rank_strategies(
        metrics_data, price_data, config, dates, metric_keys, models
    ).results


def get_top_performers(
    rankings: Sequence[DCARankingResult], count: int = 10
) -> List[DCARankingResult]:
    return list(rankings[:count])


def get_performance_stats(rankings: Sequence[DCARankingResult]) -> Dict[str, float]:
    total = len(rankings)
    outperform = sum(1 for r in rankings if r.performance == "outperform")
    underperform = sum(1 for r in rankings if r.performance == "underperform")
    neutral = sum(1 for r in rankings if r.performance == "neutral")

    return {
        "total": total,
        "outperform": outperform,
        "underperform": underperform,
        "neutral": neutral,
        "outperform_percentage": (outperform / total) * 100 if total else 0.0,
        "avg_profit_percentage": (
            sum(r.profit_percentage for r in rankings) / total if total else 0.0
        ),
    }
