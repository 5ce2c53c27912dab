"""Regression capability used by the forecasting pipeline.

The pipeline only relies on the `Predictor` protocol (`train` / `predict`);
concrete strategies are selected by name through `build_predictor`, and tests
inject their own deterministic implementations.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Protocol, Sequence

import numpy as np
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LinearRegression

from app.core.forecasting.errors import PredictorFailure


logger = logging.getLogger(__name__)


class Predictor(Protocol):
    def train(self, X: Sequence[Sequence[float]], y: Sequence[float]) -> None:
        ...

    def predict(self, X: Sequence[Sequence[float]]) -> Sequence[float]:
        ...


PredictorFactory = Callable[[], Predictor]


class RandomForestPredictor:
    """Bagged regression trees, seeded so equal inputs give equal outputs."""

    def __init__(self, n_estimators: int = 80, max_features: int = 1, seed: int = 42) -> None:
        self.n_estimators = n_estimators
        self.max_features = max_features
        self.seed = seed
        self._model: RandomForestRegressor | None = None

    def train(self, X, y) -> None:
        features = np.asarray(X, dtype=float)
        targets = np.asarray(y, dtype=float)
        n_features = features.shape[1] if features.ndim == 2 else 1
        model = RandomForestRegressor(
            n_estimators=self.n_estimators,
            max_features=max(1, min(self.max_features, n_features)),
            bootstrap=True,
            random_state=self.seed,
            n_jobs=1,
        )
        model.fit(features, targets)
        self._model = model

    def predict(self, X) -> list[float]:
        if self._model is None:
            raise RuntimeError("RandomForestPredictor.predict called before train")
        return self._model.predict(np.asarray(X, dtype=float)).tolist()


class LinearPredictor:
    """Ordinary least squares over the lag/calendar columns."""

    def __init__(self) -> None:
        self._model: LinearRegression | None = None

    def train(self, X, y) -> None:
        model = LinearRegression()
        model.fit(np.asarray(X, dtype=float), np.asarray(y, dtype=float))
        self._model = model

    def predict(self, X) -> list[float]:
        if self._model is None:
            raise RuntimeError("LinearPredictor.predict called before train")
        return self._model.predict(np.asarray(X, dtype=float)).tolist()


PREDICTOR_KINDS: tuple[str, ...] = ("random_forest", "linear")


def build_predictor(
    kind: str = "random_forest",
    n_estimators: int = 80,
    max_features: int = 1,
    seed: int = 42,
) -> Predictor:
    if kind == "random_forest":
        return RandomForestPredictor(
            n_estimators=n_estimators,
            max_features=max_features,
            seed=seed,
        )
    if kind == "linear":
        return LinearPredictor()
    raise ValueError(f"Unknown predictor kind: {kind}")


def guarded_train(predictor: Predictor, X, y) -> None:
    """Train `predictor`, turning any exception into PredictorFailure."""

    try:
        predictor.train(X, y)
    except Exception as exc:
        logger.exception("Predictor training failed")
        raise PredictorFailure(f"Predictor training failed: {exc}") from exc


def guarded_predict(predictor: Predictor, X) -> list[float]:
    """Predict and validate output shape; malformed output is a PredictorFailure."""

    try:
        raw = predictor.predict(X)
    except Exception as exc:
        logger.exception("Predictor prediction failed")
        raise PredictorFailure(f"Predictor prediction failed: {exc}") from exc

    try:
        values = [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise PredictorFailure("Predictor returned non-numeric output") from exc

    if len(values) != len(X):
        raise PredictorFailure(
            f"Predictor returned {len(values)} values for {len(X)} rows"
        )
    if not all(math.isfinite(v) for v in values):
        raise PredictorFailure("Predictor returned non-finite values")

    return values
