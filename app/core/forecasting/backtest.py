from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from app.core.forecasting.domain import LaggedDataset
from app.core.forecasting.errors import InsufficientSamplesError
from app.core.forecasting.normalize import denormalize_many
from app.core.forecasting.predictor import (
    Predictor,
    PredictorFactory,
    guarded_predict,
    guarded_train,
)


MIN_TRAINING_SAMPLES = 20
# Rows always kept on the training side when the holdout is larger than the dataset allows.
MIN_TRAIN_RESERVE = 5


@dataclass
class BacktestOutcome:
    predictor: Predictor
    mae: float
    train_sample_count: int
    test_sample_count: int


def mean_absolute_error(actual: Sequence[float], predicted: Sequence[float]) -> float:
    n = min(len(actual), len(predicted))
    if n == 0:
        return 0.0
    return sum(abs(actual[i] - predicted[i]) for i in range(n)) / n


def split_sizes(n_samples: int, holdout: int) -> tuple[int, int]:
    """Return (train_size, test_size) for a chronological split."""

    test_size = max(0, min(holdout, n_samples - MIN_TRAIN_RESERVE))
    return n_samples - test_size, test_size


def backtest(
    dataset: LaggedDataset,
    holdout: int,
    predictor_factory: PredictorFactory,
    min_train: int = MIN_TRAINING_SAMPLES,
) -> BacktestOutcome:
    """Train on the older rows, score MAE on the most recent `holdout` rows.

    The split is by index, never random, so no future row leaks into training.
    MAE is measured in original units (both sides denormalized).
    """

    train_size, test_size = split_sizes(len(dataset), holdout)
    if train_size < min_train:
        raise InsufficientSamplesError(
            f"Only {train_size} training samples after holding out {test_size}; "
            f"at least {min_train} required"
        )

    X_train, y_train = dataset.X[:train_size], dataset.y[:train_size]
    X_test, y_test = dataset.X[train_size:], dataset.y[train_size:]

    predictor = predictor_factory()
    guarded_train(predictor, X_train, y_train)

    predicted = guarded_predict(predictor, X_test) if X_test else []
    mae = mean_absolute_error(
        denormalize_many(y_test, dataset.normalization),
        denormalize_many(predicted, dataset.normalization),
    )

    return BacktestOutcome(
        predictor=predictor,
        mae=mae,
        train_sample_count=train_size,
        test_sample_count=test_size,
    )
