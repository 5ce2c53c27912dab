from __future__ import annotations

from typing import Sequence

from app.core.forecasting.domain import FallbackForecast
from app.core.forecasting.series import series_mean


def fallback_sample_threshold(lookback: int) -> int:
    """Minimum lagged samples before the regression path is attempted."""

    return max(10, 2 * lookback)


def average_forecast(values: Sequence[float], horizon: int) -> FallbackForecast:
    """Flat forecast at the historical daily mean. Never raises."""

    mean = series_mean(list(values))
    horizon = max(0, int(horizon))
    return FallbackForecast(daily=[mean] * horizon, total=mean * horizon, mean=mean)


def average_backtest_error(values: Sequence[float], holdout: int) -> float:
    """MAE of the pre-tail mean against the last `holdout` points.

    Gives the average method a comparable backtest figure; 0 when there is
    nothing to hold out or nothing to average.
    """

    values = list(values)
    if holdout <= 0 or len(values) <= holdout:
        return 0.0
    head, tail = values[:-holdout], values[-holdout:]
    mean = series_mean(head)
    return sum(abs(v - mean) for v in tail) / len(tail)
