from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.forecasting.cache import ModelCache
from app.core.forecasting.domain import DailySeries, DemandEvent
from app.core.forecasting.params import (
    DEMAND_SERIES_DAYS,
    clamp_int,
    recommendation_params,
    trend_params,
)
from app.core.forecasting.series import (
    aggregate_monthly,
    build_daily_series,
    clean_quantity,
    enumerate_dates,
    event_date,
    expand_monthly_totals,
)
from app.core.forecasting.service import ForecastingService, today_utc
from app.schemas.analytics import (
    ForecastResult,
    InventoryRecommendationsResponse,
    MonthlyDemandResponse,
    MonthlyDemandRow,
    ProductDemandSeries,
    ProductDemandSeriesResponse,
    SalesSeriesResponse,
)
from app.services.demand_source import SqlDemandSource


PRODUCT_SERIES_LIMIT = (3, 50, 12)
SALES_SERIES_DEFAULT_DAYS = 180
MONTHLY_DEMAND_MONTHS = 36

GRANULARITY_DAILY = "daily"
GRANULARITY_MONTHLY = "monthly"

_model_cache = ModelCache(max_entries=get_settings().model_cache_size)


def get_forecasting_service() -> ForecastingService:
    return ForecastingService(settings=get_settings(), cache=_model_cache)


def _group_by_product(events: list[DemandEvent]) -> dict[str, list[DemandEvent]]:
    grouped: dict[str, list[DemandEvent]] = defaultdict(list)
    for ev in events:
        grouped[ev.product_id].append(ev)
    return grouped


def _resolve_window(start: date | None, end: date | None, default_days: int, today: date | None) -> tuple[date, date]:
    end_date = end or today or today_utc()
    start_date = start or (end_date - timedelta(days=default_days))
    if start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start date must not be after end date",
        )
    return start_date, end_date


def build_inventory_recommendations(
    db: Session,
    days: int | None = None,
    horizon: int | None = None,
    lookback: int | None = None,
    today: date | None = None,
    service: ForecastingService | None = None,
) -> InventoryRecommendationsResponse:
    """Reorder recommendation for every product in the catalog."""

    params = recommendation_params(days=days, horizon=horizon, lookback=lookback)
    settings = get_settings()
    service = service or get_forecasting_service()

    end = today or today_utc()
    start = end - timedelta(days=params.days)

    source = SqlDemandSource(db)
    products = source.list_products()
    events_by_product = _group_by_product(source.fetch_events(start, end))

    items = [
        (
            build_daily_series(
                events_by_product.get(product.product_id, []),
                start,
                end,
                settings.demand_statuses,
                product_id=product.product_id,
            ),
            product,
        )
        for product in products
    ]

    recommendations = service.recommend_many(items, params)

    return InventoryRecommendationsResponse(
        window_days=params.days,
        horizon_days=params.horizon,
        lookback_days=params.lookback,
        recommendations=recommendations,
    )


def build_product_demand_forecast(
    db: Session,
    product_id: str,
    days: int | None = None,
    horizon: int | None = None,
    lookback: int | None = None,
    backtest_days: int | None = None,
    granularity: str = GRANULARITY_DAILY,
    today: date | None = None,
    service: ForecastingService | None = None,
) -> ForecastResult:
    """Backtested demand forecast for one product.

    With `granularity="monthly"` demand is first summed per month and then
    spread evenly over the days of each month before forecasting.
    """

    if granularity not in (GRANULARITY_DAILY, GRANULARITY_MONTHLY):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported granularity: {granularity}",
        )

    source = SqlDemandSource(db)
    if source.get_product(product_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    params = trend_params(days=days, horizon=horizon, lookback=lookback, backtest_days=backtest_days)
    settings = get_settings()
    service = service or get_forecasting_service()

    end = today or today_utc()
    start = end - timedelta(days=params.days)
    events = source.fetch_events(start, end, product_ids=[product_id])

    series: DailySeries
    if granularity == GRANULARITY_MONTHLY:
        monthly = aggregate_monthly(events, settings.demand_statuses, product_id=product_id)
        series = expand_monthly_totals(monthly, start, end, product_id=product_id)
    else:
        series = build_daily_series(events, start, end, settings.demand_statuses, product_id=product_id)

    return service.forecast_trend(series, params)


def build_product_demand_series(
    db: Session,
    limit: int | None = None,
    start: date | None = None,
    end: date | None = None,
    today: date | None = None,
) -> ProductDemandSeriesResponse:
    """Daily demand of the best-selling products over the window."""

    top_n = clamp_int(limit, PRODUCT_SERIES_LIMIT)
    start_date, end_date = _resolve_window(start, end, DEMAND_SERIES_DAYS, today)
    settings = get_settings()

    source = SqlDemandSource(db)
    events_by_product = _group_by_product(source.fetch_events(start_date, end_date))

    series_by_product: dict[str, DailySeries] = {}
    totals: dict[str, float] = {}
    for pid, events in events_by_product.items():
        series = build_daily_series(events, start_date, end_date, settings.demand_statuses, product_id=pid)
        total = sum(series.values)
        if total > 0:
            series_by_product[pid] = series
            totals[pid] = total

    top_ids = [pid for pid, _ in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))][:top_n]
    snapshots = source.get_products(top_ids)

    labels = enumerate_dates(start_date, end_date)
    products = [
        ProductDemandSeries(
            product_id=pid,
            product_name=(snapshots[pid].name if pid in snapshots and snapshots[pid].name else pid),
            labels=labels,
            quantities=series_by_product[pid].values,
            total_units=totals[pid],
        )
        for pid in top_ids
    ]

    return ProductDemandSeriesResponse(
        start_date=start_date,
        end_date=end_date,
        labels=labels,
        products=products,
    )


def _event_revenue(ev: DemandEvent, price: float) -> float:
    """Amount paid when recorded, otherwise quantity at list price."""

    paid = ev.revenue or 0.0
    if paid > 0:
        return paid
    return clean_quantity(ev.quantity) * price


def build_sales_series(
    db: Session,
    start: date | None = None,
    end: date | None = None,
    today: date | None = None,
) -> SalesSeriesResponse:
    """Daily revenue and units across all products."""

    start_date, end_date = _resolve_window(start, end, SALES_SERIES_DEFAULT_DAYS, today)
    statuses = set(get_settings().demand_statuses)

    source = SqlDemandSource(db)
    events = [ev for ev in source.fetch_events(start_date, end_date) if ev.status in statuses]
    prices = {pid: snap.price for pid, snap in source.get_products({ev.product_id for ev in events}).items()}

    labels = enumerate_dates(start_date, end_date)
    revenue_by_day: dict[date, float] = {d: 0.0 for d in labels}
    qty_by_day: dict[date, float] = {d: 0.0 for d in labels}

    for ev in events:
        day = event_date(ev.timestamp)
        if day not in revenue_by_day:
            continue
        revenue_by_day[day] += _event_revenue(ev, prices.get(ev.product_id, 0.0))
        qty_by_day[day] += clean_quantity(ev.quantity)

    return SalesSeriesResponse(
        start_date=start_date,
        end_date=end_date,
        labels=labels,
        revenue=[revenue_by_day[d] for d in labels],
        quantities=[qty_by_day[d] for d in labels],
    )


def build_monthly_demand(
    db: Session,
    months: int = MONTHLY_DEMAND_MONTHS,
    today: date | None = None,
) -> MonthlyDemandResponse:
    """Monthly units and revenue per product with a reconstructed stock trail.

    Stock is walked backwards from today's available stock: a month's ending
    stock is the following month's beginning stock, and beginning = ending + sold.
    Nothing is persisted.
    """

    end = today or today_utc()
    start = end - timedelta(days=months * 31)
    statuses = set(get_settings().demand_statuses)

    source = SqlDemandSource(db)
    events = [ev for ev in source.fetch_events(start, end) if ev.status in statuses]
    snapshots = source.get_products({ev.product_id for ev in events})

    agg: dict[tuple[str, date], dict] = {}
    for ev in events:
        month_start = event_date(ev.timestamp).replace(day=1)
        key = (ev.product_id, month_start)
        bucket = agg.setdefault(
            key,
            {"units": 0.0, "revenue": 0.0, "orders": 0, "reservations": 0},
        )
        snapshot = snapshots.get(ev.product_id)
        bucket["units"] += clean_quantity(ev.quantity)
        bucket["revenue"] += _event_revenue(ev, snapshot.price if snapshot else 0.0)
        if ev.item_type == "order":
            bucket["orders"] += 1
        elif ev.item_type == "reservation":
            bucket["reservations"] += 1

    months_by_product: dict[str, list[date]] = defaultdict(list)
    for pid, month_start in agg:
        months_by_product[pid].append(month_start)

    rows: list[MonthlyDemandRow] = []
    for pid in sorted(months_by_product):
        snapshot = snapshots.get(pid)
        running_ending = float(snapshot.available) if snapshot else 0.0

        for month_start in sorted(months_by_product[pid], reverse=True):
            bucket = agg[(pid, month_start)]
            ending = max(0.0, running_ending)
            beginning = ending + bucket["units"]
            rows.append(
                MonthlyDemandRow(
                    product_id=pid,
                    month_start=month_start,
                    units_sold=bucket["units"],
                    revenue=bucket["revenue"],
                    beginning_stock=beginning,
                    ending_stock=ending,
                    order_count=bucket["orders"],
                    reservation_count=bucket["reservations"],
                )
            )
            running_ending = beginning

    return MonthlyDemandResponse(months=months, start_date=start, rows=rows)
