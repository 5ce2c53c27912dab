"""Per-product forecasting pipeline.

Wires series -> normalization -> lagged dataset -> predictor -> recursive
forecast -> recommendation, and degrades to the average-based forecast when
regression is infeasible, fails or runs out of its wall-clock budget.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date, datetime, timezone
from typing import Callable, Optional, Sequence, TypeVar

from app.core.config import ForecastingSettings, get_settings
from app.core.forecasting.backtest import backtest
from app.core.forecasting.cache import CachedModel, ModelCache, make_cache_key, series_fingerprint
from app.core.forecasting.domain import (
    DailySeries,
    ForecastMethod,
    ProductSnapshot,
    RecommendationParams,
    RegressionForecast,
    TrendParams,
)
from app.core.forecasting.errors import InsufficientDataError, PredictorFailure
from app.core.forecasting.fallback import (
    average_backtest_error,
    average_forecast,
    fallback_sample_threshold,
)
from app.core.forecasting.features import build_dataset
from app.core.forecasting.insight import summarize_forecast_delta, trend_recommendation
from app.core.forecasting.inventory import (
    classify_risk,
    compute_order_quantity,
    compute_recommended_minimum,
    compute_safety_stock,
)
from app.core.forecasting.normalize import normalize
from app.core.forecasting.predictor import Predictor, build_predictor, guarded_train
from app.core.forecasting.recursive import future_dates, recursive_forecast
from app.core.forecasting.series import sample_std, series_mean
from app.schemas.analytics import (
    ForecastInsight,
    ForecastMetadata,
    ForecastResult,
    InventoryRecommendation,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

PredictorBuilder = Callable[..., Predictor]

# Extra history, beyond lookback + backtest window, required by the trend variant.
TREND_MIN_EXTRA_POINTS = 10


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def _require_variance(values: Sequence[float]) -> None:
    """A constant series carries nothing for a regressor to learn beyond its mean."""

    if sample_std(list(values)) == 0.0:
        raise InsufficientDataError("series has zero variance")


class ForecastingService:
    """Forecasting and reorder recommendations for independent products.

    Holds no per-request state; the optional model cache is the only state
    shared between calls.
    """

    def __init__(
        self,
        settings: Optional[ForecastingSettings] = None,
        predictor_builder: PredictorBuilder = build_predictor,
        cache: Optional[ModelCache] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._predictor_builder = predictor_builder
        self._cache = cache

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def recommend(
        self,
        series: DailySeries,
        snapshot: ProductSnapshot,
        params: RecommendationParams,
    ) -> InventoryRecommendation:
        values = series.values
        avg = series_mean(values)
        sigma = sample_std(values)
        safety_stock = compute_safety_stock(sigma)

        method = ForecastMethod.AVERAGE
        daily: list[float] = []
        try:
            regression = self._run_with_budget(
                lambda: self._regression_for_recommendation(series, params),
                product_id=snapshot.product_id,
            )
            daily = regression.daily
            method = ForecastMethod.REGRESSION
        except (InsufficientDataError, PredictorFailure) as exc:
            logger.warning(
                "Average forecast used for product %s: %s",
                snapshot.product_id,
                exc,
            )

        if method is ForecastMethod.AVERAGE:
            daily = average_forecast(values, params.horizon).daily

        forecast_total = float(sum(daily))
        available = snapshot.available
        recommended_minimum = compute_recommended_minimum(forecast_total, safety_stock)
        order_qty = compute_order_quantity(recommended_minimum, available)

        return InventoryRecommendation(
            product_id=snapshot.product_id,
            name=snapshot.name,
            category=snapshot.category,
            inventory=int(snapshot.inventory or 0),
            reserved_stock=int(snapshot.reserved_stock or 0),
            available_stock=available,
            horizon_days=params.horizon,
            lookback_days=params.lookback,
            demand_avg_per_day=avg,
            forecast_total=round(forecast_total, 2),
            safety_stock=safety_stock,
            recommended_minimum=recommended_minimum,
            recommended_order_quantity=order_qty,
            method=method,
            risk_level=classify_risk(available, order_qty),
        )

    def recommend_many(
        self,
        items: Sequence[tuple[DailySeries, ProductSnapshot]],
        params: RecommendationParams,
    ) -> list[InventoryRecommendation]:
        """Recommend for many products in parallel; output keeps input order."""

        if not items:
            return []
        workers = min(self.settings.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="forecast") as pool:
            return list(pool.map(lambda item: self.recommend(item[0], item[1], params), items))

    def _regression_for_recommendation(
        self,
        series: DailySeries,
        params: RecommendationParams,
    ) -> RegressionForecast:
        lookback = params.lookback
        _require_variance(series.values)
        normalized, normalization = normalize(series.values)
        dataset = build_dataset(normalized, lookback, normalization)

        required = fallback_sample_threshold(lookback)
        if len(dataset) < required:
            raise InsufficientDataError(
                f"{len(dataset)} lagged samples, at least {required} required"
            )

        predictor = self._cached_or_trained(series, params, dataset, normalization)
        daily = recursive_forecast(
            predictor,
            normalized[-lookback:],
            params.horizon,
            normalization,
        )
        return RegressionForecast(daily=daily, train_sample_count=len(dataset))

    def _cached_or_trained(self, series, params, dataset, normalization) -> Predictor:
        key = None
        fingerprint = ""
        if self._cache is not None and series.product_id is not None:
            key = make_cache_key(
                series.product_id,
                params.lookback,
                params.horizon,
                series.start,
                series.end,
            )
            fingerprint = series_fingerprint(series.values)
            cached = self._cache.get(key, fingerprint)
            if cached is not None:
                return cached.predictor

        predictor = self._new_predictor(
            n_estimators=self.settings.recommendation_estimators,
            max_features=max(1, math.floor(math.sqrt(params.lookback))),
        )
        guarded_train(predictor, dataset.X, dataset.y)

        if key is not None:
            self._cache.put(
                key,
                fingerprint,
                CachedModel(
                    predictor=predictor,
                    normalization=normalization,
                    train_sample_count=len(dataset),
                ),
            )
        return predictor

    # ------------------------------------------------------------------
    # Trend forecast
    # ------------------------------------------------------------------

    def forecast_trend(self, series: DailySeries, params: TrendParams) -> ForecastResult:
        """Backtested daily forecast with history and future on one axis."""

        values = series.values
        method = ForecastMethod.AVERAGE
        try:
            regression = self._run_with_budget(
                lambda: self._regression_for_trend(series, params),
                product_id=series.product_id,
            )
            daily = regression.daily
            backtest_error = regression.backtest_error or 0.0
            train_sample_count = regression.train_sample_count
            method = ForecastMethod.REGRESSION
        except (InsufficientDataError, PredictorFailure) as exc:
            logger.warning(
                "Average trend forecast used for product %s: %s",
                series.product_id,
                exc,
            )
            daily = average_forecast(values, params.horizon).daily
            backtest_error = average_backtest_error(values, params.backtest_days)
            train_sample_count = 0

        last_date = series.end or today_utc()
        horizon_dates = future_dates(last_date, params.horizon)

        delta = summarize_forecast_delta(values, daily, params.horizon)

        return ForecastResult(
            product_id=series.product_id,
            labels=list(series.dates) + horizon_dates,
            actual=list(values) + [None] * params.horizon,
            forecast=[None] * len(values) + list(daily),
            backtest_error=backtest_error,
            method=method,
            metadata=ForecastMetadata(
                train_sample_count=train_sample_count,
                lookback=params.lookback,
                horizon=params.horizon,
                backtest_window=params.backtest_days,
            ),
            insight=ForecastInsight(
                recent_sum=delta.recent_sum,
                future_sum=delta.future_sum,
                pct_change=delta.pct_change,
                recommendation=trend_recommendation(delta.pct_change),
            ),
        )

    def _regression_for_trend(self, series: DailySeries, params: TrendParams) -> RegressionForecast:
        n = len(series)
        lookback = params.lookback
        required = lookback + params.backtest_days + TREND_MIN_EXTRA_POINTS
        if n < required:
            raise InsufficientDataError(
                f"{n} days of history, at least {required} required to train"
            )
        _require_variance(series.values)

        normalized, normalization = normalize(series.values)
        dataset = build_dataset(
            normalized,
            lookback,
            normalization,
            dates=series.dates,
            calendar=True,
        )

        max_features = max(2, math.floor(math.sqrt(lookback + 3)))
        outcome = backtest(
            dataset,
            params.backtest_days,
            lambda: self._new_predictor(
                n_estimators=self.settings.trend_estimators,
                max_features=max_features,
            ),
        )

        daily = recursive_forecast(
            outcome.predictor,
            normalized[-lookback:],
            params.horizon,
            normalization,
            last_date=series.end,
            calendar=True,
            series_length=n,
        )
        return RegressionForecast(
            daily=daily,
            backtest_error=outcome.mae,
            train_sample_count=outcome.train_sample_count,
        )

    def _new_predictor(self, n_estimators: int, max_features: int) -> Predictor:
        """Build the configured predictor; a builder error is a PredictorFailure."""

        try:
            return self._predictor_builder(
                kind=self.settings.predictor_kind,
                n_estimators=n_estimators,
                max_features=max_features,
                seed=self.settings.random_seed,
            )
        except Exception as exc:
            logger.exception("Predictor construction failed")
            raise PredictorFailure(f"Predictor construction failed: {exc}") from exc

    # ------------------------------------------------------------------

    def _run_with_budget(self, fn: Callable[[], T], product_id: Optional[str] = None) -> T:
        """Run `fn` under the per-product wall-clock budget.

        An exceeded budget is reported as PredictorFailure; the worker thread is
        abandoned and its result discarded.
        """

        budget = self.settings.product_budget_seconds
        if not budget or budget <= 0:
            return fn()

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="forecast-budget")
        future = pool.submit(fn)
        try:
            return future.result(timeout=budget)
        except FutureTimeoutError as exc:
            future.cancel()
            raise PredictorFailure(
                f"Forecast for product {product_id} exceeded {budget:.1f}s budget"
            ) from exc
        finally:
            pool.shutdown(wait=False)
