from __future__ import annotations


class ForecastingError(Exception):
    """Base class for all forecasting pipeline errors."""


class InsufficientDataError(ForecastingError):
    """Too few points to build a lagged dataset for the requested lookback."""


class InsufficientSamplesError(InsufficientDataError):
    """Too few training samples remain after the backtest split."""


class PredictorFailure(ForecastingError):
    """The regression model raised, timed out or returned malformed output."""


class InvalidSeriesShape(ForecastingError, ValueError):
    """Series labels and values have different lengths.

    This is a caller contract violation and is never resolved by the fallback.
    """
