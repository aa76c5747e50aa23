from typing import Dict, List, Optional
from pydantic import BaseModel


class MetricDataSchema(BaseModel):
    """Aligned metric series; missing samples are null"""
    dates: List[str]
    metrics: Dict[str, List[Optional[float]]]


class ZScoreSchema(BaseModel):
    metric_key: str
    metric_name: str
    window: Optional[int] = None  # None = all history
    dates: List[str]
    values: List[Optional[float]]
    z_scores: List[Optional[float]]


class LatestMetricsSchema(BaseModel):
    latest_date: Optional[str] = None
    price: Optional[float] = None
    market_cap: Optional[float] = None
    realized_cap: Optional[float] = None
    mvrv_ratio: Optional[float] = None
    price_change_30d: Optional[float] = None
    price_change_90d: Optional[float] = None
    price_change_180d: Optional[float] = None
    market_cap_change_30d: Optional[float] = None
    market_cap_change_90d: Optional[float] = None
    market_cap_change_180d: Optional[float] = None
    realized_cap_change_30d: Optional[float] = None
    realized_cap_change_90d: Optional[float] = None
    realized_cap_change_180d: Optional[float] = None
    mvrv_change_30d: Optional[float] = None
    mvrv_change_90d: Optional[float] = None
    mvrv_change_180d: Optional[float] = None


class RankingRow(BaseModel):
    rank: int
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


class RankingFailureSchema(BaseModel):
    metric_key: str
    model_name: Optional[str] = None
    reason: str


class PerformanceStats(BaseModel):
    total: int
    outperform: int
    underperform: int
    neutral: int
    outperform_percentage: float
    avg_profit_percentage: float


class RankingConfigSchema(BaseModel):
    budget_per_day: float
    window_size: Optional[int] = None  # None = all history
    zone_size: float
    max_bonus: float
    daily_budget_cap: Optional[float] = None


class DCARankingsResponse(BaseModel):
    config: RankingConfigSchema
    rankings: List[RankingRow]
    top_performers: List[RankingRow]
    stats: PerformanceStats
    failures: List[RankingFailureSchema]
