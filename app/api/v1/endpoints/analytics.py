from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.forecasting.errors import InvalidSeriesShape
from app.schemas.analytics import (
    ForecastResult,
    InventoryRecommendationsResponse,
    MonthlyDemandResponse,
    ProductDemandSeriesResponse,
    SalesSeriesResponse,
)
from app.services.analytics import (
    GRANULARITY_DAILY,
    build_inventory_recommendations,
    build_monthly_demand,
    build_product_demand_forecast,
    build_product_demand_series,
    build_sales_series,
)


router = APIRouter()


@router.get(
    "/inventory-recommendations",
    response_model=InventoryRecommendationsResponse,
    summary="Reorder recommendations per product",
    description=(
        "Forecasts demand over the horizon for every product and derives safety stock, "
        "recommended minimum stock, order quantity and a risk level. Out-of-range "
        "parameters are clamped."
    ),
)
def get_inventory_recommendations(
    days: int | None = Query(None, description="History window in days, clamped to 30..365"),
    horizon: int | None = Query(None, description="Forecast horizon in days, clamped to 7..60"),
    lookback: int | None = Query(None, description="Lag window in days, clamped to 3..60"),
    db: Session = Depends(get_db),
) -> InventoryRecommendationsResponse:
    try:
        return build_inventory_recommendations(db=db, days=days, horizon=horizon, lookback=lookback)
    except InvalidSeriesShape as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.get(
    "/products/{product_id}/demand-forecast",
    response_model=ForecastResult,
    summary="Backtested demand forecast for one product",
)
def get_product_demand_forecast(
    product_id: str = Path(...),
    days: int | None = Query(None, description="History window in days, clamped to 30..365"),
    horizon: int | None = Query(None, description="Forecast horizon in days, clamped to 1..90"),
    lookback: int | None = Query(None, description="Lag window in days, clamped to 3..60"),
    backtest_days: int | None = Query(None, description="Held-out tail in days, clamped to 7..60"),
    granularity: str = Query(GRANULARITY_DAILY, description="daily or monthly"),
    db: Session = Depends(get_db),
) -> ForecastResult:
    try:
        return build_product_demand_forecast(
            db=db,
            product_id=product_id,
            days=days,
            horizon=horizon,
            lookback=lookback,
            backtest_days=backtest_days,
            granularity=granularity,
        )
    except InvalidSeriesShape as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.get("/product-demand-series", response_model=ProductDemandSeriesResponse)
def get_product_demand_series(
    limit: int | None = Query(None, description="Number of top products, clamped to 3..50"),
    start: date | None = None,
    end: date | None = None,
    db: Session = Depends(get_db),
) -> ProductDemandSeriesResponse:
    return build_product_demand_series(db=db, limit=limit, start=start, end=end)


@router.get("/sales-series", response_model=SalesSeriesResponse)
def get_sales_series(
    start: date | None = None,
    end: date | None = None,
    db: Session = Depends(get_db),
) -> SalesSeriesResponse:
    return build_sales_series(db=db, start=start, end=end)


@router.get("/monthly-demand", response_model=MonthlyDemandResponse)
def get_monthly_demand(db: Session = Depends(get_db)) -> MonthlyDemandResponse:
    return build_monthly_demand(db=db)
