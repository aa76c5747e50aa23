#!/usr/bin/env python3
"""
Main CLI entry point for Clarion.

Fetches every on-chain metric, prints the latest snapshot and ranks each
metric + allocation model against regular DCA.

Usage:
    python main.py                          # Fetch, snapshot and ranking
    python main.py --window 2yr --top 20    # Shorter backtest window, longer list
    python main.py --export                 # Also write CSVs to data/
    python main.py --serve                  # Run the HTTP service instead
"""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from clarion.config import settings
from clarion.data_fetcher import fetch_all_metrics_sync
from clarion.dca_ranker import (
    DCARankingConfig,
    get_performance_stats,
    get_top_performers,
    rank_strategies,
)
from clarion.latest_metrics import CHANGE_PERIODS, HEADLINE_METRICS, get_latest_metrics_summary
from clarion.persistence import save_metric_data, save_rankings
from clarion.providers.brk import MetricFetchError
from clarion.zscore import resolve_window


def print_banner(title: str, leading_newline: bool = True):
    if leading_newline:
        print()
    print("=" * 80)
    print(title)
    print("=" * 80)


def _fmt_change(value) -> str:
    return "   n/a" if value is None else f"{value:+6.2f}%"


def print_latest_snapshot(summary: dict):
    print(f"\nLatest date: {summary['latest_date'] or 'n/a'}")
    for name in HEADLINE_METRICS:
        value = summary[name]
        shown = "n/a" if value is None else f"{value:,.2f}"
        changes = "  ".join(
            f"{days}d {_fmt_change(summary[f'{name}_change_{days}d'])}" for days in CHANGE_PERIODS
        )
        print(f"  {name:<13} {shown:>22}   {changes}")


def print_rankings(rankings, top: int):
    print(f"\n{'#':>3}  {'Metric':<38} {'Model':<11} {'Profit %':>9}  {'BTC':>10}  {'Spent':>12}  Perf")
    print("-" * 80)
    for i, r in enumerate(get_top_performers(rankings, top), start=1):
        print(
            f"{i:>3}  {r.metric_name[:38]:<38} {r.model_name:<11} {r.profit_percentage:>8.2f}%"
            f"  {r.total_btc:>10.6f}  {r.total_spent:>12,.2f}  {r.performance}"
        )


def print_failures(failures):
    for failure in failures:
        print(f"  - {failure.metric_key} / {failure.model_name or 'all models'}: {failure.reason}")


def main(args: argparse.Namespace) -> int:
    print_banner("Clarion - On-chain Metric DCA Ranking", leading_newline=False)

    try:
        window = resolve_window(args.window)
    except ValueError as e:
        print(f"Invalid --window: {e}")
        return 1

    # Step 1: Fetch
    print_banner("STEP 1: Fetch Metrics")
    print(f"Source: {settings.API_BASE_URL}")
    try:
        data = fetch_all_metrics_sync()
    except MetricFetchError as e:
        print(f"✗ {e}")
        return 1

    print(f"✓ {len(data.metrics)} metrics, {len(data.dates)} days")
    if data.dates:
        print(f"  Date range: {data.dates[0]} to {data.dates[-1]}")
    for key, error in data.derived_failures.items():
        print(f"  ⚠ Derived metric {key} unavailable: {error}")

    # Step 2: Snapshot
    print_banner("STEP 2: Latest Snapshot")
    print_latest_snapshot(get_latest_metrics_summary(data))

    # Step 3: Ranking
    print_banner("STEP 3: DCA Strategy Ranking")
    config = DCARankingConfig(
        budget_per_day=args.budget,
        window_size=window,
        zone_size=args.zone_size,
    )
    window_label = "all history" if window == float("inf") else f"{int(window)} days"
    print(f"Budget: {config.budget_per_day}/day, window: {window_label}, zone size: {config.zone_size}")

    report = rank_strategies(data.metrics, data.prices, config, dates=data.dates)
    if not report.results:
        print("⚠ No ranking results")
        print_failures(report.failures)
        return 1
    print_rankings(report.results, args.top)

    stats = get_performance_stats(report.results)
    print_banner("PERFORMANCE STATS")
    print(f"\nStrategies ranked: {stats['total']}")
    print(f"  Outperform (> +5%):   {stats['outperform']} ({stats['outperform_percentage']:.1f}%)")
    print(f"  Neutral:              {stats['neutral']}")
    print(f"  Underperform (< -5%): {stats['underperform']}")
    print(f"  Average profit:       {stats['avg_profit_percentage']:.2f}%")
    if report.failures:
        print(f"\n⚠ {len(report.failures)} combinations failed:")
        print_failures(report.failures)

    # Step 4: Export
    if args.export:
        print_banner("STEP 4: Export to CSV")
        ok = save_metric_data(data) and save_rankings(report.results)
        print("✓ Export complete!" if ok else "⚠ Warning: Failed to export data")

    print()
    return 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Rank on-chain metric DCA strategies against regular DCA."
    )
    parser.add_argument("--budget", type=float, default=settings.DCA_BUDGET_PER_DAY,
                        help="Daily budget for regular DCA")
    parser.add_argument("--window", default=str(settings.DCA_WINDOW_SIZE),
                        help="Backtest window: 2yr, 4yr, 8yr, all or a day count")
    parser.add_argument("--zone-size", type=float, default=settings.DCA_ZONE_SIZE,
                        help="Z-score zone width for the zone-based model")
    parser.add_argument("--top", type=int, default=10, help="Number of top strategies to print")
    parser.add_argument("--export", action="store_true", help="Write metrics and rankings CSVs")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP service")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()

    if args.serve:
        import uvicorn
        uvicorn.run("clarion.main:app", host="0.0.0.0", port=8000)
        sys.exit(0)

    sys.exit(main(args))
