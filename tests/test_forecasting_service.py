from __future__ import annotations

from datetime import date, timedelta

import pytest

from app.core.forecasting.cache import ModelCache
from app.core.forecasting.domain import (
    ForecastMethod,
    ProductSnapshot,
    RecommendationParams,
    RiskLevel,
    TrendParams,
)
from app.core.forecasting.errors import InvalidSeriesShape
from app.core.forecasting.fallback import average_backtest_error
from app.core.forecasting.inventory import compute_safety_stock
from app.core.forecasting.series import sample_std
from app.core.forecasting.service import ForecastingService
from tests.test_utils import (
    EmptyOutputPredictor,
    FailingPredictor,
    LastLagPredictor,
    SlowPredictor,
    make_series,
    make_settings,
)


SAW_TOOTH = [float(i % 5) for i in range(40)]


def _snapshot(product_id: str = "p-1", inventory: int = 10, reserved: int = 0) -> ProductSnapshot:
    return ProductSnapshot(product_id=product_id, name=product_id, category=None, inventory=inventory, reserved_stock=reserved)


def _service(predictor_factory=None, cache=None, **settings) -> ForecastingService:
    kwargs = {}
    if predictor_factory is not None:
        kwargs["predictor_builder"] = lambda **_: predictor_factory()
    return ForecastingService(settings=make_settings(**settings), cache=cache, **kwargs)


class TestRecommend:
    def test_constant_demand_uses_average(self):
        """30 days at 4/day, horizon 14 -> total 56, safety 1, minimum 57."""
        service = _service()
        params = RecommendationParams(days=30, horizon=14, lookback=7)

        rec = service.recommend(make_series([4.0] * 30), _snapshot(inventory=100), params)

        assert rec.method == ForecastMethod.AVERAGE
        assert rec.forecast_total == pytest.approx(56.0)
        assert rec.demand_avg_per_day == pytest.approx(4.0)
        assert rec.safety_stock == 1
        assert rec.recommended_minimum == 57
        assert rec.recommended_order_quantity == 0
        assert rec.risk_level == RiskLevel.OK

    def test_short_history_falls_back_without_training(self):
        calls = []

        def factory():
            calls.append(1)
            return LastLagPredictor(lookback=7)

        service = _service(factory)
        values = [float(i % 3) for i in range(15)]

        rec = service.recommend(make_series(values), _snapshot(), RecommendationParams(days=30, horizon=7, lookback=7))

        assert rec.method == ForecastMethod.AVERAGE
        assert calls == []
        assert rec.forecast_total == pytest.approx(7 * sum(values) / len(values), abs=0.01)

    def test_regression_path_with_persistence_predictor(self):
        captured = {}
        predictor = LastLagPredictor(lookback=7)

        def builder(**kwargs):
            captured.update(kwargs)
            return predictor

        service = ForecastingService(settings=make_settings(), predictor_builder=builder)
        params = RecommendationParams(days=40, horizon=14, lookback=7)

        rec = service.recommend(make_series(SAW_TOOTH), _snapshot(inventory=5), params)

        assert rec.method == ForecastMethod.REGRESSION
        # persistence repeats the last observation (4) for every day
        assert rec.forecast_total == pytest.approx(56.0, abs=0.01)
        assert rec.safety_stock == compute_safety_stock(sample_std(SAW_TOOTH))
        assert predictor.trained_rows == 33
        assert len(predictor.predicted_rows) == 14
        assert captured["n_estimators"] == 80
        assert captured["max_features"] == 2
        assert captured["seed"] == 42

    @pytest.mark.parametrize(
        "factory",
        [FailingPredictor, EmptyOutputPredictor],
        ids=["raises", "malformed-output"],
    )
    def test_broken_predictor_degrades_to_average(self, factory):
        service = _service(factory)
        params = RecommendationParams(days=40, horizon=14, lookback=7)

        rec = service.recommend(make_series(SAW_TOOTH), _snapshot(), params)

        assert rec.method == ForecastMethod.AVERAGE
        assert rec.forecast_total == pytest.approx(14 * 2.0)

    def test_unknown_predictor_kind_degrades_to_average(self):
        service = ForecastingService(settings=make_settings(predictor_kind="xgboost"))
        params = RecommendationParams(days=40, horizon=14, lookback=7)

        rec = service.recommend(make_series(SAW_TOOTH), _snapshot(), params)
        result = service.forecast_trend(
            make_series([float(i % 5) for i in range(80)]),
            TrendParams(days=80, horizon=5, lookback=7, backtest_days=7),
        )

        assert rec.method == ForecastMethod.AVERAGE
        assert rec.forecast_total == pytest.approx(14 * 2.0)
        assert result.method == ForecastMethod.AVERAGE

    def test_budget_exceeded_degrades_to_average(self):
        service = _service(lambda: SlowPredictor(1.0), product_budget_seconds=0.1)
        params = RecommendationParams(days=40, horizon=14, lookback=7)

        rec = service.recommend(make_series(SAW_TOOTH), _snapshot(), params)

        assert rec.method == ForecastMethod.AVERAGE

    def test_zero_budget_runs_inline(self):
        service = _service(lambda: LastLagPredictor(lookback=7), product_budget_seconds=0)
        params = RecommendationParams(days=40, horizon=14, lookback=7)

        rec = service.recommend(make_series(SAW_TOOTH), _snapshot(), params)

        assert rec.method == ForecastMethod.REGRESSION

    def test_nothing_available_is_out(self):
        service = _service()
        rec = service.recommend(
            make_series([0.0] * 30),
            _snapshot(inventory=4, reserved=4),
            RecommendationParams(days=30, horizon=14, lookback=7),
        )

        assert rec.available_stock == 0
        assert rec.forecast_total == 0.0
        assert rec.recommended_minimum == 1
        assert rec.risk_level == RiskLevel.OUT

    def test_recommend_many_keeps_input_order(self):
        service = _service(max_workers=3)
        items = [
            (make_series([float(i)] * 30, product_id=f"p-{i}"), _snapshot(product_id=f"p-{i}"))
            for i in range(6)
        ]

        recs = service.recommend_many(items, RecommendationParams(days=30, horizon=7, lookback=7))

        assert [r.product_id for r in recs] == [f"p-{i}" for i in range(6)]
        assert [r.forecast_total for r in recs] == [pytest.approx(7.0 * i) for i in range(6)]
        assert service.recommend_many([], RecommendationParams()) == []


class TestModelCacheReuse:
    def test_trained_model_is_reused_until_series_changes(self):
        calls = []

        def factory():
            calls.append(1)
            return LastLagPredictor(lookback=7)

        cache = ModelCache(max_entries=8)
        service = _service(factory, cache=cache)
        params = RecommendationParams(days=40, horizon=14, lookback=7)

        first = service.recommend(make_series(SAW_TOOTH), _snapshot(), params)
        second = service.recommend(make_series(SAW_TOOTH), _snapshot(), params)
        assert len(calls) == 1
        assert first.forecast_total == second.forecast_total

        changed = list(SAW_TOOTH)
        changed[-1] = 3.0
        service.recommend(make_series(changed), _snapshot(), params)
        assert len(calls) == 2

        assert cache.invalidate("p-1") == 1
        service.recommend(make_series(changed), _snapshot(), params)
        assert len(calls) == 3

    def test_series_without_product_is_not_cached(self):
        cache = ModelCache(max_entries=8)
        service = _service(lambda: LastLagPredictor(lookback=7), cache=cache)

        service.recommend(make_series(SAW_TOOTH, product_id=None), _snapshot(), RecommendationParams(days=40, horizon=14, lookback=7))

        assert len(cache) == 0


class TestForecastTrend:
    PARAMS = TrendParams(days=80, horizon=5, lookback=7, backtest_days=7)

    def test_regression_result_layout(self):
        values = [float(i % 5) for i in range(80)]
        series = make_series(values)
        service = _service(lambda: LastLagPredictor(lookback=7))

        result = service.forecast_trend(series, self.PARAMS)

        assert result.method == ForecastMethod.REGRESSION
        assert len(result.labels) == 85
        assert result.labels[:80] == series.dates
        assert result.labels[80] == series.end + timedelta(days=1)
        assert result.actual[:80] == values
        assert result.actual[80:] == [None] * 5
        assert result.forecast[:80] == [None] * 80
        assert result.forecast[80:] == [pytest.approx(4.0)] * 5

        assert result.metadata.train_sample_count == 66
        assert result.metadata.lookback == 7
        assert result.metadata.horizon == 5
        assert result.metadata.backtest_window == 7
        # persistence misses by 1 on each step up and by 4 on the reset
        assert result.backtest_error == pytest.approx(10 / 7)

        assert result.insight.recent_sum == pytest.approx(10.0)
        assert result.insight.future_sum == pytest.approx(20.0)
        assert result.insight.pct_change == pytest.approx(1.0)
        assert result.insight.recommendation.startswith("Uptrend")

    def test_calendar_columns_reach_the_predictor(self):
        predictor = LastLagPredictor(lookback=7)
        service = _service(lambda: predictor)

        service.forecast_trend(make_series([float(i % 5) for i in range(80)]), self.PARAMS)

        rows = predictor.predicted_rows
        # 7 backtest rows then 5 forecast rows, each 7 lags + 3 calendar columns
        assert len(rows) == 12
        assert all(len(row) == 10 for row in rows)
        assert rows[-1][-1] == pytest.approx(1.0)

    def test_short_history_falls_back_to_average(self):
        values = [float(i % 4) for i in range(20)]
        service = _service(lambda: LastLagPredictor(lookback=7))

        result = service.forecast_trend(make_series(values), TrendParams(days=30, horizon=5, lookback=7, backtest_days=7))

        assert result.method == ForecastMethod.AVERAGE
        assert result.metadata.train_sample_count == 0
        assert result.backtest_error == pytest.approx(average_backtest_error(values, 7))
        assert result.forecast[20:] == [pytest.approx(sum(values) / 20)] * 5
        assert len(result.labels) == 25

    def test_failing_predictor_falls_back_to_average(self):
        service = _service(FailingPredictor)

        result = service.forecast_trend(make_series([float(i % 5) for i in range(80)]), self.PARAMS)

        assert result.method == ForecastMethod.AVERAGE
        assert result.forecast[80:] == [pytest.approx(2.0)] * 5

    def test_mismatched_series_is_rejected(self):
        series = make_series([float(i % 5) for i in range(40)])
        series.dates.append(series.end + timedelta(days=1))
        service = _service(lambda: LastLagPredictor(lookback=7))

        with pytest.raises(InvalidSeriesShape):
            service.forecast_trend(series, TrendParams(days=40, horizon=5, lookback=7, backtest_days=7))


def test_random_forest_is_deterministic_for_a_seed():
    weekly = [float(3 + (i % 7 == 5) * 6 + (i % 7 == 6) * 4) for i in range(70)]
    series = make_series(weekly, start=date(2025, 3, 1))
    params = RecommendationParams(days=70, horizon=14, lookback=7)

    runs = [
        ForecastingService(settings=make_settings(recommendation_estimators=10)).recommend(series, _snapshot(), params)
        for _ in range(2)
    ]

    assert runs[0].method == ForecastMethod.REGRESSION
    assert runs[0].forecast_total == runs[1].forecast_total
    assert runs[0].forecast_total >= 0.0
