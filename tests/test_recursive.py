from __future__ import annotations

from datetime import date

import pytest

from app.core.forecasting.domain import NormalizationParameters
from app.core.forecasting.recursive import future_dates, recursive_forecast
from tests.test_utils import LastLagPredictor, SequencePredictor


UNIT = NormalizationParameters(mean=0.0, std=1.0)


def test_predictions_are_fed_back_into_the_window():
    predictor = SequencePredictor([1.0, 2.0, 3.0])

    out = recursive_forecast(predictor, [0.1, 0.2, 0.3], 3, UNIT)

    assert out == [1.0, 2.0, 3.0]
    assert predictor.rows == [
        [0.1, 0.2, 0.3],
        [0.2, 0.3, 1.0],
        [0.3, 1.0, 2.0],
    ]


def test_forecast_is_denormalized():
    params = NormalizationParameters(mean=10.0, std=2.0)
    out = recursive_forecast(SequencePredictor([0.5, -1.0]), [0.0, 0.0], 2, params)
    assert out == pytest.approx([11.0, 8.0])


def test_negative_predictions_are_clipped_and_fed_back_clipped():
    params = NormalizationParameters(mean=2.0, std=1.0)
    predictor = SequencePredictor([-5.0, 0.0])

    out = recursive_forecast(predictor, [0.0, 0.0], 2, params)

    assert out == [0.0, 2.0]
    # clipped 0 units re-normalized: (0 - 2) / 1
    assert predictor.rows[1] == [0.0, -2.0]


def test_persistence_predictor_repeats_last_value():
    params = NormalizationParameters(mean=3.0, std=1.5)
    last_window = [(v - 3.0) / 1.5 for v in [1.0, 2.0, 6.0]]

    out = recursive_forecast(LastLagPredictor(lookback=3), last_window, 5, params)

    assert out == pytest.approx([6.0] * 5)


def test_calendar_rows_use_future_dates_and_trend():
    predictor = SequencePredictor([0.0, 0.0])

    recursive_forecast(
        predictor,
        [0.5],
        2,
        UNIT,
        last_date=date(2025, 1, 4),
        calendar=True,
        series_length=11,
    )

    # 2025-01-05 is a Sunday; trend positions 11/12 and 12/12
    assert predictor.rows[0] == pytest.approx([0.5, 0.0, 0.0, 11 / 12])
    assert predictor.rows[1] == pytest.approx([0.0, 1 / 6, 0.0, 1.0])


def test_calendar_requires_anchor():
    with pytest.raises(ValueError):
        recursive_forecast(SequencePredictor([0.0]), [0.0], 1, UNIT, calendar=True)


def test_future_dates():
    assert future_dates(date(2025, 1, 30), 3) == [date(2025, 1, 31), date(2025, 2, 1), date(2025, 2, 2)]
