from __future__ import annotations

from datetime import date

from pydantic import BaseModel

from app.core.forecasting.domain import ForecastMethod, RiskLevel


class InventoryRecommendation(BaseModel):
    product_id: str
    name: str | None = None
    category: str | None = None

    inventory: int
    reserved_stock: int
    available_stock: int

    horizon_days: int
    lookback_days: int
    demand_avg_per_day: float

    forecast_total: float
    safety_stock: int
    recommended_minimum: int
    recommended_order_quantity: int

    method: ForecastMethod
    risk_level: RiskLevel


class InventoryRecommendationsResponse(BaseModel):
    window_days: int
    horizon_days: int
    lookback_days: int
    recommendations: list[InventoryRecommendation]


class ForecastMetadata(BaseModel):
    train_sample_count: int
    lookback: int
    horizon: int
    backtest_window: int


class ForecastInsight(BaseModel):
    recent_sum: float
    future_sum: float
    pct_change: float
    recommendation: str


class ForecastResult(BaseModel):
    product_id: str | None = None
    labels: list[date]
    actual: list[float | None]
    forecast: list[float | None]
    backtest_error: float
    method: ForecastMethod
    metadata: ForecastMetadata
    insight: ForecastInsight | None = None


class ProductDemandSeries(BaseModel):
    product_id: str
    product_name: str
    labels: list[date]
    quantities: list[float]
    total_units: float


class ProductDemandSeriesResponse(BaseModel):
    start_date: date
    end_date: date
    labels: list[date]
    products: list[ProductDemandSeries]


class SalesSeriesResponse(BaseModel):
    start_date: date
    end_date: date
    labels: list[date]
    revenue: list[float]
    quantities: list[float]


class MonthlyDemandRow(BaseModel):
    product_id: str
    month_start: date
    units_sold: float
    revenue: float
    beginning_stock: float
    ending_stock: float
    order_count: int
    reservation_count: int


class MonthlyDemandResponse(BaseModel):
    months: int
    start_date: date
    rows: list[MonthlyDemandRow]
