from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from app.core.forecasting.errors import InvalidSeriesShape


class ForecastMethod(str, Enum):
    REGRESSION = "regression"
    AVERAGE = "average"


class RiskLevel(str, Enum):
    OUT = "out"
    LOW = "low"
    REORDER = "reorder"
    OK = "ok"


@dataclass(frozen=True)
class DemandEvent:
    """A single historical transaction for one product.

    `status` is the effective lifecycle status of the transaction (already
    resolved from order/item status and lower-cased by the data source).
    """

    product_id: str
    """Identifier of the product the event belongs to."""

    timestamp: datetime
    """Instant the transaction was created."""

    quantity: float
    """Units demanded; non-positive or non-finite values contribute nothing."""

    status: Optional[str]
    """Effective status used to decide whether the event is realized demand."""

    item_type: Optional[str] = None
    """Kind of record in the source system ("order" or "reservation")."""

    revenue: Optional[float] = None
    """Amount paid for the event, if known."""


@dataclass(frozen=True)
class MonthlyDemand:
    """Demand total known only at month granularity."""

    product_id: str
    month_start: date
    quantity: float


@dataclass
class DailySeries:
    """Gap-free daily demand series for one product."""

    dates: List[date]
    values: List[float]
    product_id: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.dates) != len(self.values):
            raise InvalidSeriesShape(
                f"Series shape mismatch: {len(self.dates)} dates vs {len(self.values)} values"
            )

    def __len__(self) -> int:
        return len(self.values)

    @property
    def start(self) -> Optional[date]:
        return self.dates[0] if self.dates else None

    @property
    def end(self) -> Optional[date]:
        return self.dates[-1] if self.dates else None


@dataclass(frozen=True)
class NormalizationParameters:
    mean: float
    std: float


@dataclass
class LaggedDataset:
    """Supervised dataset built from a normalized series.

    Rows are kept in chronological order; the backtest split depends on it.
    """

    X: List[List[float]]
    y: List[float]
    lookback: int
    normalization: NormalizationParameters
    with_calendar: bool = False

    def __len__(self) -> int:
        return len(self.y)


@dataclass(frozen=True)
class ProductSnapshot:
    """Stock position of one product at request time."""

    product_id: str
    name: Optional[str] = None
    category: Optional[str] = None
    price: float = 0.0
    inventory: int = 0
    reserved_stock: int = 0

    @property
    def available(self) -> int:
        return max(0, int(self.inventory or 0) - int(self.reserved_stock or 0))


@dataclass(frozen=True)
class RecommendationParams:
    """Clamped inputs of the reorder recommendation pipeline."""

    days: int = 120
    horizon: int = 14
    lookback: int = 7


@dataclass(frozen=True)
class TrendParams:
    """Clamped inputs of the trend forecast pipeline."""

    days: int = 180
    horizon: int = 30
    lookback: int = 14
    backtest_days: int = 28


@dataclass
class FallbackForecast:
    daily: List[float]
    total: float
    mean: float


@dataclass
class RegressionForecast:
    """Output of one successful regression pass over a series."""

    daily: List[float]
    backtest_error: Optional[float] = None
    train_sample_count: int = 0

    @property
    def total(self) -> float:
        return float(sum(self.daily))
