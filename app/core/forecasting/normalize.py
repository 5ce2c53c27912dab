from __future__ import annotations

from typing import Sequence

from app.core.forecasting.domain import NormalizationParameters
from app.core.forecasting.series import sample_std, series_mean


def fit_normalization(values: Sequence[float]) -> NormalizationParameters:
    """Z-score parameters of a series.

    std falls back to 1.0 when it is zero or the series is shorter than two
    points, so normalization never divides by zero.
    """

    mean = series_mean(list(values))
    std = sample_std(list(values)) or 1.0
    return NormalizationParameters(mean=mean, std=std)


def normalize(values: Sequence[float]) -> tuple[list[float], NormalizationParameters]:
    params = fit_normalization(values)
    return [normalize_value(v, params) for v in values], params


def normalize_value(value: float, params: NormalizationParameters) -> float:
    return (value - params.mean) / params.std


def denormalize(z: float, params: NormalizationParameters) -> float:
    return z * params.std + params.mean


def denormalize_many(values: Sequence[float], params: NormalizationParameters) -> list[float]:
    return [denormalize(v, params) for v in values]
