from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from clarion.api.deps import MetricFetcher, get_metric_fetcher, series_to_list, window_to_schema
from clarion.api.schemas import LatestMetricsSchema, MetricDataSchema, ZScoreSchema
from clarion.latest_metrics import get_latest_metrics_summary
from clarion.metrics_config import display_name
from clarion.zscore import calculate_z_scores, resolve_window

router = APIRouter()


@router.get("/metrics", response_model=MetricDataSchema)
async def get_metrics(
    keys: Optional[str] = Query(None, description="Comma-separated metric keys; default all"),
    fetch: MetricFetcher = Depends(get_metric_fetcher),
):
    """
    All aligned metric series (upstream and derived) on one date axis.
    """
    data = await fetch()

    selected = list(data.metrics)
    if keys:
        selected = [k.strip() for k in keys.split(",") if k.strip()]
        unknown = [k for k in selected if k not in data.metrics]
        if unknown:
            raise HTTPException(status_code=404, detail=f"Unknown metrics: {', '.join(unknown)}")

    return MetricDataSchema(
        dates=data.dates,
        metrics={key: series_to_list(data.metrics[key]) for key in selected},
    )


@router.get("/metrics/latest", response_model=LatestMetricsSchema)
async def get_latest_metrics(fetch: MetricFetcher = Depends(get_metric_fetcher)):
    """Latest headline values with 30/90/180-day percentage changes."""
    data = await fetch()
    return LatestMetricsSchema(**get_latest_metrics_summary(data))


@router.get("/metrics/{key}/zscores", response_model=ZScoreSchema)
async def get_metric_z_scores(
    key: str,
    window: str = Query("4yr", description="2yr, 4yr, 8yr, all or a day count"),
    fetch: MetricFetcher = Depends(get_metric_fetcher),
):
    try:
        window_size = resolve_window(window)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    data = await fetch()
    if key not in data.metrics:
        raise HTTPException(status_code=404, detail=f"Unknown metric: {key}")

    values = data.metrics[key]
    return ZScoreSchema(
        metric_key=key,
        metric_name=display_name(key),
        window=window_to_schema(window_size),
        dates=data.dates,
        values=series_to_list(values),
        z_scores=series_to_list(calculate_z_scores(values, window_size)),
    )
