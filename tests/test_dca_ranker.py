import math

import numpy as np
import pytest

from clarion.dca import AllocationModel
from clarion.dca_ranker import (
    BASELINE_METRIC_KEY,
    DCARankingConfig,
    DCARankingResult,
    calculate_metric_model_profitability,
    calculate_regular_dca_baseline,
    classify_performance,
    generate_dca_rankings,
    get_performance_stats,
    get_top_performers,
    orient_z_scores,
    rank_strategies,
)

FLAT_MODEL = AllocationModel("flat", lambda z, config: np.ones(len(z)))


def make_result(profit_percentage, performance=None):
    return DCARankingResult(
        metric_key="m",
        metric_name="M",
        model_name="x",
        total_btc=1.0,
        total_spent=100.0,
        current_value=100.0 + profit_percentage,
        profit=profit_percentage,
        profit_percentage=profit_percentage,
        avg_price=100.0,
        final_price=100.0,
        performance=performance or classify_performance(profit_percentage),
    )


@pytest.fixture(name="config")
def config_fixture():
    return DCARankingConfig(budget_per_day=10, window_size=math.inf, daily_budget_cap=None)


@pytest.mark.parametrize(
    "profit, expected",
    [(12.0, "outperform"), (5.0, "neutral"), (0.0, "neutral"), (-5.0, "neutral"), (-5.1, "underperform")],
)
def test_classify_performance(profit, expected):
    assert classify_performance(profit) == expected


def test_regular_baseline(config):
    prices = [100.0, 90.0, 110.0, 80.0, 120.0]
    result = calculate_regular_dca_baseline(prices, config, dates=["d1", "d2", "d3", "d4", "d5"])

    assert result.metric_key == BASELINE_METRIC_KEY
    assert result.total_spent == pytest.approx(50.0)
    assert result.total_btc == pytest.approx(0.4549, abs=1e-4)
    assert result.final_price == 120.0
    assert result.current_value == pytest.approx(result.total_btc * 120.0)
    assert result.dates == ["d1", "d2", "d3", "d4", "d5"]


def test_profitability_uses_window(config):
    config.window_size = 3
    prices = np.array([100.0, 90.0, 110.0, 80.0, 120.0])
    result = calculate_metric_model_profitability(
        prices, prices, "close", FLAT_MODEL, config, dates=["a", "b", "c", "d", "e"]
    )
    assert result.total_spent == pytest.approx(30.0)
    assert result.dates == ["c", "d", "e"]
    assert len(result.z_scores) == 3


def test_profitability_nan_final_price(config):
    with pytest.raises(ValueError, match="Final price"):
        calculate_metric_model_profitability(
            [1.0, 2.0], [100.0, np.nan], "close", FLAT_MODEL, config
        )


def test_orient_z_scores():
    z = np.array([-1.0, 2.0])
    # liveliness: higher value means cheaper
    assert np.array_equal(orient_z_scores(z, "liveliness"), -z)
    assert np.array_equal(orient_z_scores(z, "marketcap"), z)


def test_rankings_sorted_by_profit(config):
    winner = AllocationModel("winner", lambda z, c: np.array([0.0, 0.0, 0.0, 3.0]))
    loser = AllocationModel("loser", lambda z, c: np.array([3.0, 0.0, 0.0, 0.0]))
    prices = np.array([120.0, 110.0, 100.0, 90.0])

    rankings = generate_dca_rankings(
        {"close": prices},
        prices,
        config,
        metric_keys=["close"],
        models={"loser": loser, "winner": winner},
    )

    profits = [r.profit_percentage for r in rankings]
    assert profits == sorted(profits, reverse=True)
    assert rankings[0].model_name == "winner"
    assert rankings[-1].model_name == "loser"


def test_failed_combination_is_isolated(config):
    def broken(z, c):
        raise ValueError("bad model")

    prices = np.array([100.0, 110.0, 120.0])
    report = rank_strategies(
        {"close": prices, "marketcap": prices * 10},
        prices,
        config,
        metric_keys=["close", "marketcap"],
        models={"flat": FLAT_MODEL, "broken": AllocationModel("broken", broken)},
    )

    # baseline + two metrics with the flat model
    assert len(report.results) == 3
    assert {(f.metric_key, f.model_name) for f in report.failures} == {
        ("close", "broken"),
        ("marketcap", "broken"),
    }
    assert all("bad model" in f.reason for f in report.failures)


def test_length_mismatch_excluded(config):
    prices = np.array([100.0, 110.0, 120.0])
    report = rank_strategies(
        {"close": prices, "marketcap": np.ones(2)},
        prices,
        config,
        metric_keys=["close", "marketcap"],
        models={"flat": FLAT_MODEL},
    )

    assert "marketcap" not in {r.metric_key for r in report.results}
    assert report.failures[0].metric_key == "marketcap"
    assert report.failures[0].model_name is None


def test_missing_metric_is_skipped(config):
    prices = np.array([100.0, 110.0])
    report = rank_strategies({"close": prices}, prices, config, metric_keys=["close", "liveliness"])
    assert {r.metric_key for r in report.results} == {BASELINE_METRIC_KEY, "close"}
    assert report.failures == []


def test_empty_prices_gives_empty_report(config):
    report = rank_strategies({}, [], config)
    assert report.results == []
    assert report.failures == []


def test_full_sweep_on_sample_data(metric_data):
    config = DCARankingConfig(budget_per_day=10, window_size=365, daily_budget_cap=None)
    report = rank_strategies(metric_data.metrics, metric_data.prices, config, dates=metric_data.dates)

    assert report.results
    assert any(r.model_name == "softmax" for r in report.results)
    for r in report.results:
        assert len(r.btc_bought) == len(r.daily_allocations)
        if r.model_name == "softmax":
            # Softmax allocations are budget neutral over the window
            assert r.total_spent == pytest.approx(10 * 365)


def test_top_performers():
    rankings = [make_result(p) for p in (30.0, 20.0, 10.0)]
    assert get_top_performers(rankings, 2) == rankings[:2]
    assert get_top_performers(rankings, 10) == rankings


def test_performance_stats():
    stats = get_performance_stats([make_result(12.0), make_result(-3.0), make_result(-9.0)])
    assert stats["total"] == 3
    assert stats["outperform"] == 1
    assert stats["neutral"] == 1
    assert stats["underperform"] == 1
    assert stats["outperform_percentage"] == pytest.approx(100 / 3)
    assert stats["avg_profit_percentage"] == pytest.approx(0.0)


def test_performance_stats_empty():
    stats = get_performance_stats([])
    assert stats["total"] == 0
    assert stats["outperform_percentage"] == 0.0
    assert stats["avg_profit_percentage"] == 0.0


def test_tiny_zone_size_does_not_abort_sweep():
    prices = np.linspace(100, 200, 60)
    config = DCARankingConfig(zone_size=1e-11, window_size=math.inf, daily_budget_cap=None)
    report = rank_strategies({"close": prices}, prices, config, metric_keys=["close"])

    assert {(r.metric_key, r.model_name) for r in report.results} == {
        (BASELINE_METRIC_KEY, "baseline"),
        ("close", "zone_based"),
        ("close", "softmax"),
    }
    assert report.failures == []


def test_unexpected_model_error_is_isolated(config):
    def exhausted(z, c):
        raise MemoryError("out of memory")

    prices = np.array([100.0, 110.0, 120.0])
    report = rank_strategies(
        {"close": prices},
        prices,
        config,
        metric_keys=["close"],
        models={"flat": FLAT_MODEL, "exhausted": AllocationModel("exhausted", exhausted)},
    )

    assert [f.model_name for f in report.failures] == ["exhausted"]
    assert {r.model_name for r in report.results} == {"baseline", "flat"}


def test_missing_final_price_fails_baseline_too(config):
    prices = np.array([100.0, 110.0, 120.0, np.nan])
    report = rank_strategies({"close": prices}, prices, config, metric_keys=["close"])

    assert report.results == []
    assert {(f.metric_key, f.model_name) for f in report.failures} == {
        (BASELINE_METRIC_KEY, "baseline"),
        ("close", "zone_based"),
        ("close", "softmax"),
    }
    assert all(f.reason == "Final price is missing" for f in report.failures)


def test_baseline_rejects_missing_final_price(config):
    with pytest.raises(ValueError, match="Final price"):
        calculate_regular_dca_baseline([100.0, np.nan], config)


def test_stats_stay_finite_with_missing_final_price(config):
    prices = np.array([100.0, 110.0, np.nan])
    report = rank_strategies({"close": prices}, prices, config, metric_keys=["close"])
    stats = get_performance_stats(report.results)
    assert all(math.isfinite(value) for value in stats.values())
