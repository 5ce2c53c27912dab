from __future__ import annotations

import pytest

from app.core.forecasting.insight import summarize_forecast_delta, trend_recommendation


def test_delta_compares_last_horizon_days_with_forecast():
    actual = [1.0, 1.0, 2.0, 3.0, None, None]
    forecast = [None, None, None, None, 4.0, 6.0]

    delta = summarize_forecast_delta(actual, forecast, 2)

    assert delta.recent_sum == pytest.approx(5.0)
    assert delta.future_sum == pytest.approx(10.0)
    assert delta.pct_change == pytest.approx(1.0)


def test_zero_recent_demand_gives_zero_change():
    delta = summarize_forecast_delta([0.0, 0.0], [3.0], 1)
    assert delta.pct_change == 0.0


@pytest.mark.parametrize(
    "pct,word",
    [(-0.5, "Downtrend"), (-0.1, "Downtrend"), (0.0, "Stable"), (0.09, "Stable"), (0.1, "Uptrend")],
)
def test_trend_recommendation(pct, word):
    assert trend_recommendation(pct).startswith(word)
