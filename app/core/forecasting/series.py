from __future__ import annotations

import calendar
import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from app.core.forecasting.domain import DailySeries, DemandEvent, MonthlyDemand


def enumerate_dates(start: date, end: date) -> list[date]:
    """Return every calendar day in [start, end] inclusive."""

    if start > end:
        return []
    span = (end - start).days
    return [start + timedelta(days=offset) for offset in range(span + 1)]


def event_date(timestamp: datetime) -> date:
    """Calendar day of an event; aware timestamps are bucketed in UTC."""

    if timestamp.tzinfo is not None:
        return timestamp.astimezone(timezone.utc).date()
    return timestamp.date()


def clean_quantity(value) -> float:
    """Demand contribution of a raw quantity (0 for invalid or non-positive)."""

    try:
        qty = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(qty) or qty <= 0:
        return 0.0
    return qty


def build_daily_series(
    events: Iterable[DemandEvent],
    start: date,
    end: date,
    demand_statuses: Iterable[str],
    product_id: Optional[str] = None,
) -> DailySeries:
    """Aggregate demand events into a zero-filled daily series over [start, end].

    Only events whose status is in `demand_statuses` count. When `product_id`
    is given, events of other products are ignored.
    """

    statuses = {s.lower() for s in demand_statuses}
    by_day: dict[date, float] = defaultdict(float)

    for ev in events:
        if product_id is not None and ev.product_id != product_id:
            continue
        if (ev.status or "").lower() not in statuses:
            continue
        day = event_date(ev.timestamp)
        if day < start or day > end:
            continue
        by_day[day] += clean_quantity(ev.quantity)

    dates = enumerate_dates(start, end)
    return DailySeries(
        dates=dates,
        values=[by_day.get(d, 0.0) for d in dates],
        product_id=product_id,
    )


def days_in_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def expand_monthly_totals(
    monthly: Iterable[MonthlyDemand],
    start: date,
    end: date,
    product_id: Optional[str] = None,
) -> DailySeries:
    """Spread monthly totals uniformly over the days of their month.

    A month fully inside [start, end] gives each day `quantity / days_in_month`.
    A month cut by the window is spread over its days inside the window only,
    since its total was summed from those days; demand in the window is kept.
    """

    by_day: dict[date, float] = defaultdict(float)

    for row in monthly:
        if product_id is not None and row.product_id != product_id:
            continue
        qty = clean_quantity(row.quantity)
        if qty == 0.0:
            continue
        month_start = row.month_start.replace(day=1)
        month_days = [month_start + timedelta(days=offset) for offset in range(days_in_month(month_start))]
        covered = [day for day in month_days if start <= day <= end]
        if not covered:
            continue
        per_day = qty / len(covered)
        for day in covered:
            by_day[day] += per_day

    dates = enumerate_dates(start, end)
    return DailySeries(
        dates=dates,
        values=[by_day.get(d, 0.0) for d in dates],
        product_id=product_id,
    )


def aggregate_monthly(
    events: Iterable[DemandEvent],
    demand_statuses: Iterable[str],
    product_id: Optional[str] = None,
) -> list[MonthlyDemand]:
    """Sum demand events into (product, month) totals, ordered by product then month."""

    statuses = {s.lower() for s in demand_statuses}
    totals: dict[tuple[str, date], float] = defaultdict(float)

    for ev in events:
        if product_id is not None and ev.product_id != product_id:
            continue
        if (ev.status or "").lower() not in statuses:
            continue
        month_start = event_date(ev.timestamp).replace(day=1)
        totals[(ev.product_id, month_start)] += clean_quantity(ev.quantity)

    return [
        MonthlyDemand(product_id=pid, month_start=month, quantity=qty)
        for (pid, month), qty in sorted(totals.items())
    ]


def sample_std(values: list[float]) -> float:
    """Sample (n-1) standard deviation; 0 for fewer than two points."""

    clean = [v for v in values if math.isfinite(v)]
    if len(clean) < 2:
        return 0.0
    mean = sum(clean) / len(clean)
    variance = sum((v - mean) ** 2 for v in clean) / (len(clean) - 1)
    return math.sqrt(variance)


def series_mean(values: list[float]) -> float:
    clean = [v for v in values if math.isfinite(v)]
    if not clean:
        return 0.0
    return sum(clean) / len(clean)
