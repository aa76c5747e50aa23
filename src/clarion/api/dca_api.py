from fastapi import APIRouter, Depends, HTTPException, Query

from clarion.api.deps import MetricFetcher, get_metric_fetcher, window_to_schema
from clarion.api.schemas import (
    DCARankingsResponse,
    PerformanceStats,
    RankingConfigSchema,
    RankingFailureSchema,
    RankingRow,
)
from clarion.config import settings
from clarion.dca_ranker import (
    DCARankingConfig,
    get_performance_stats,
    get_top_performers,
    rank_strategies,
)
from clarion.zscore import resolve_window

router = APIRouter()


@router.get("/dca/rankings", response_model=DCARankingsResponse)
async def get_dca_rankings(
    budget_per_day: float = Query(settings.DCA_BUDGET_PER_DAY, gt=0),
    window_size: str = Query(str(settings.DCA_WINDOW_SIZE), description="2yr, 4yr, 8yr, all or a day count"),
    zone_size: float = Query(settings.DCA_ZONE_SIZE, gt=0),
    top: int = Query(10, ge=1),
    fetch: MetricFetcher = Depends(get_metric_fetcher),
):
    """
    Rank every metric + allocation model combination against regular DCA.

    Per-day arrays are omitted; the response carries the scalar results,
    top performers, outperform/underperform counts and any failed combinations.
    """
    try:
        window = resolve_window(window_size)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    config = DCARankingConfig(
        budget_per_day=budget_per_day,
        window_size=window,
        zone_size=zone_size,
    )

    data = await fetch()
    if len(data.prices) == 0:
        raise HTTPException(status_code=502, detail="No price data available")

    report = rank_strategies(data.metrics, data.prices, config, dates=data.dates)
    rows = [
        RankingRow(rank=i, **result.summary())
        for i, result in enumerate(report.results, start=1)
    ]

    return DCARankingsResponse(
        config=RankingConfigSchema(
            budget_per_day=config.budget_per_day,
            window_size=window_to_schema(config.window_size),
            zone_size=config.zone_size,
            max_bonus=config.max_bonus,
            daily_budget_cap=config.daily_budget_cap,
        ),
        rankings=rows,
        top_performers=get_top_performers(rows, top),
        stats=PerformanceStats(**get_performance_stats(report.results)),
        failures=[
            RankingFailureSchema(metric_key=f.metric_key, model_name=f.model_name, reason=f.reason)
            for f in report.failures
        ],
    )
