from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from app.core.forecasting.domain import LaggedDataset, NormalizationParameters
from app.core.forecasting.errors import InsufficientDataError, InvalidSeriesShape


CALENDAR_FEATURE_COUNT = 3


def calendar_features(day: date, position: float, span: float) -> list[float]:
    """Calendar columns appended after the lags: [day_of_week, month, trend].

    Day of week counts from Sunday = 0 and is scaled to [0, 1] over 0..6;
    month is scaled over 0..11; trend is `position / span` (0 when span is 0).
    """

    dow = (day.weekday() + 1) % 7
    trend = position / span if span > 0 else 0.0
    return [dow / 6, (day.month - 1) / 11, trend]


def build_dataset(
    normalized: Sequence[float],
    lookback: int,
    normalization: NormalizationParameters,
    dates: Optional[Sequence[date]] = None,
    calendar: bool = False,
) -> LaggedDataset:
    """Turn a normalized series into (lags [+ calendar]) -> next value rows.

    Column order is fixed: the `lookback` lags oldest to newest, then the
    calendar features of the target day when `calendar` is on. The recursive
    forecaster builds its rows with the same layout.
    """

    n = len(normalized)
    if lookback < 1:
        raise ValueError("lookback must be positive")
    if n <= lookback:
        raise InsufficientDataError(
            f"Series of length {n} is too short for lookback={lookback}"
        )
    if calendar:
        if dates is None:
            raise ValueError("dates are required when calendar features are enabled")
        if len(dates) != n:
            raise InvalidSeriesShape(
                f"Series shape mismatch: {len(dates)} dates vs {n} values"
            )

    X: list[list[float]] = []
    y: list[float] = []
    for t in range(lookback, n):
        row = list(normalized[t - lookback:t])
        if calendar:
            row.extend(calendar_features(dates[t], t, n - 1))
        X.append(row)
        y.append(normalized[t])

    return LaggedDataset(
        X=X,
        y=y,
        lookback=lookback,
        normalization=normalization,
        with_calendar=calendar,
    )
