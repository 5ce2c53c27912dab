from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Sequence

from app.core.forecasting.domain import NormalizationParameters
from app.core.forecasting.features import calendar_features
from app.core.forecasting.normalize import denormalize, normalize_value
from app.core.forecasting.predictor import Predictor, guarded_predict


def future_dates(last_date: date, horizon: int) -> list[date]:
    return [last_date + timedelta(days=i) for i in range(1, horizon + 1)]


def recursive_forecast(
    predictor: Predictor,
    last_window: Sequence[float],
    horizon: int,
    normalization: NormalizationParameters,
    last_date: Optional[date] = None,
    calendar: bool = False,
    series_length: Optional[int] = None,
) -> list[float]:
    """Roll a trained predictor forward `horizon` days.

    Each step predicts one row built from the current window, clips the
    denormalized value at zero and feeds it back (normalized) as the newest
    lag. Errors compound with the horizon; no correction is applied.
    """

    if calendar and (last_date is None or series_length is None):
        raise ValueError("last_date and series_length are required for calendar features")

    window = list(last_window)
    out: list[float] = []

    for i in range(1, horizon + 1):
        row = list(window)
        if calendar:
            day = last_date + timedelta(days=i)
            position = series_length - 1 + i
            span = series_length - 1 + horizon
            row.extend(calendar_features(day, position, span))

        predicted_norm = guarded_predict(predictor, [row])[0]
        value = max(0.0, denormalize(predicted_norm, normalization))
        out.append(value)

        window = window[1:] + [normalize_value(value, normalization)]

    return out
