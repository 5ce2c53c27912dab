from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence


TREND_THRESHOLD = 0.1


@dataclass(frozen=True)
class ForecastDelta:
    recent_sum: float
    future_sum: float
    pct_change: float


def _finite(values: Sequence[Optional[float]]) -> list[float]:
    return [float(v) for v in values if v is not None and math.isfinite(v)]


def summarize_forecast_delta(
    actual: Sequence[Optional[float]],
    forecast: Sequence[Optional[float]],
    horizon: int,
) -> ForecastDelta:
    """Compare the last `horizon` observed days with the forecast horizon."""

    actual_clean = _finite(actual)
    recent_window = min(horizon, len(actual_clean))
    recent = actual_clean[len(actual_clean) - recent_window:] if recent_window else []
    recent_sum = sum(recent)

    future = list(forecast)[max(0, len(forecast) - horizon):]
    future_sum = sum(_finite(future))

    pct_change = (future_sum - recent_sum) / recent_sum if recent_sum > 0 else 0.0
    return ForecastDelta(recent_sum=recent_sum, future_sum=future_sum, pct_change=pct_change)


def trend_recommendation(pct_change: float) -> str:
    if pct_change <= -TREND_THRESHOLD:
        return "Downtrend forecast: consider promos, bundles, or review pricing."
    if pct_change >= TREND_THRESHOLD:
        return "Uptrend forecast: consider price optimization or upsell bundles."
    return "Stable trend: keep current pricing/promo strategy."
