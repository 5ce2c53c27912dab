from __future__ import annotations

import math
from typing import Optional

from app.core.forecasting.domain import RecommendationParams, TrendParams


# (min, max, default)
RECOMMENDATION_DAYS = (30, 365, 120)
RECOMMENDATION_HORIZON = (7, 60, 14)
RECOMMENDATION_LOOKBACK = (3, 60, 7)

TREND_DAYS = (30, 365, 180)
TREND_HORIZON = (1, 90, 30)
TREND_LOOKBACK = (3, 60, 14)
TREND_BACKTEST_DAYS = (7, 60, 28)

DEMAND_SERIES_DAYS = 1095


def clamp_int(value: Optional[float], bounds: tuple[int, int, int]) -> int:
    """Floor `value` and clamp it into [min, max]; None or NaN gives the default."""

    low, high, default = bounds
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    if math.isinf(number):
        return high if number > 0 else low
    return max(low, min(high, math.floor(number)))


def recommendation_params(
    days: Optional[float] = None,
    horizon: Optional[float] = None,
    lookback: Optional[float] = None,
) -> RecommendationParams:
    return RecommendationParams(
        days=clamp_int(days, RECOMMENDATION_DAYS),
        horizon=clamp_int(horizon, RECOMMENDATION_HORIZON),
        lookback=clamp_int(lookback, RECOMMENDATION_LOOKBACK),
    )


def trend_params(
    days: Optional[float] = None,
    horizon: Optional[float] = None,
    lookback: Optional[float] = None,
    backtest_days: Optional[float] = None,
) -> TrendParams:
    return TrendParams(
        days=clamp_int(days, TREND_DAYS),
        horizon=clamp_int(horizon, TREND_HORIZON),
        lookback=clamp_int(lookback, TREND_LOOKBACK),
        backtest_days=clamp_int(backtest_days, TREND_BACKTEST_DAYS),
    )
