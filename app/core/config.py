from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


DEFAULT_DEMAND_STATUSES: tuple[str, ...] = (
    "reserved",
    "approved",
    "in_production",
    "start_packaging",
    "ready_for_delivery",
    "completed",
)

DEMAND_ITEM_TYPES: tuple[str, ...] = ("order", "reservation")


@dataclass(frozen=True)
class ForecastingSettings:
    database_url: str = "sqlite:///./forecasting.db"
    random_seed: int = 42
    predictor_kind: str = "random_forest"
    recommendation_estimators: int = 80
    trend_estimators: int = 160
    product_budget_seconds: float = 10.0
    max_workers: int = 4
    model_cache_size: int = 256
    demand_statuses: tuple[str, ...] = DEFAULT_DEMAND_STATUSES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_statuses(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    statuses = tuple(s.strip().lower() for s in raw.split(",") if s.strip())
    return statuses or default


def load_settings() -> ForecastingSettings:
    """Read forecasting settings from the environment."""

    return ForecastingSettings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./forecasting.db"),
        random_seed=_env_int("FORECAST_RANDOM_SEED", 42),
        predictor_kind=os.getenv("FORECAST_PREDICTOR", "random_forest").strip().lower(),
        recommendation_estimators=_env_int("FORECAST_RECOMMENDATION_ESTIMATORS", 80),
        trend_estimators=_env_int("FORECAST_TREND_ESTIMATORS", 160),
        product_budget_seconds=_env_float("FORECAST_PRODUCT_BUDGET_SECONDS", 10.0),
        max_workers=max(1, _env_int("FORECAST_MAX_WORKERS", 4)),
        model_cache_size=max(0, _env_int("FORECAST_MODEL_CACHE_SIZE", 256)),
        demand_statuses=_env_statuses("FORECAST_DEMAND_STATUSES", DEFAULT_DEMAND_STATUSES),
    )


@lru_cache
def get_settings() -> ForecastingSettings:
    return load_settings()
